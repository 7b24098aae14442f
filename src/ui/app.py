"""Gradio UI for the Redactly document redaction service."""

import asyncio
import io
import tempfile
from pathlib import Path

import gradio as gr
from PIL import Image

from redactly.exceptions import RedactlyError
from redactly.models.entities import (
    MAX_PIXELATE_AMOUNT,
    MIN_PIXELATE_AMOUNT,
    EntityKind,
    FileStatus,
    RedactionOptions,
    RedactionStyle,
)
from redactly.suggestions.prompt_builder import DEFAULT_CRITERIA

STYLE_CHOICES = [
    ("Black box", RedactionStyle.SOLID_FILL.value),
    ("Color fill", RedactionStyle.COLOR_FILL.value),
    ("Pixelate", RedactionStyle.PIXELATE.value),
]

QUEUE_HEADERS = ["Filename", "Status", "PII", "Signatures", "Selected", "Error"]


def _get_pipeline():
    """Shared pipeline, built from the current settings on first use."""
    from api.service import get_pipeline

    return get_pipeline()


def _preview(content: bytes) -> Image.Image:
    with Image.open(io.BytesIO(content)) as image:
        return image.convert("RGB")


def _entity_label(entity) -> str:
    if entity.kind is EntityKind.SIGNATURE:
        return f"Signature ({entity.box.width:.0f}x{entity.box.height:.0f})"
    return f"{entity.subtype}: {entity.text}"


def _write_download(filename: str, data: bytes) -> str:
    path = Path(tempfile.mkdtemp(prefix="redactly-")) / filename
    path.write_bytes(data)
    return str(path)


def _queue_rows() -> list[list]:
    rows = []
    for session in _get_pipeline().list():
        rows.append([
            session.filename,
            session.status.value,
            len(session.pii_entities),
            len(session.signature_entities),
            len(session.selection),
            session.error or "",
        ])
    return rows


def _session_choices() -> list[tuple[str, str]]:
    return [(s.filename, s.id) for s in _get_pipeline().list()]


def _status_line(session) -> str:
    line = (
        f"**{session.filename}** | status `{session.status.value}` | "
        f"{len(session.pii_entities)} PII, {len(session.signature_entities)} signatures, "
        f"**{len(session.selection)}** selected"
    )
    if session.error:
        line += f"\n\n> {session.error}"
    return line


async def upload_files(paths, use_llm):
    """Queue uploaded images and wait for their detection to finish."""
    from api.uploads import UploadValidator

    if not paths:
        raise gr.Error("Please upload at least one image.")

    pipeline = _get_pipeline()
    validator = UploadValidator()
    accepted = []
    problems = []
    for path in paths:
        name = Path(path).name
        try:
            valid = validator.validate(name, Path(path).read_bytes())
        except ValueError as e:
            problems.append(str(e))
            continue
        accepted.append((valid.filename, valid.content, valid.mime_type))

    sessions, rejected = pipeline.submit_many(accepted, use_llm=bool(use_llm))
    problems.extend(f"{r.filename}: {r.reason}" for r in rejected)

    if sessions:
        await asyncio.gather(*(pipeline.wait_for_detection(s.id) for s in sessions))

    failed = sum(1 for s in sessions if s.status is FileStatus.ERROR)
    status_md = f"**{len(sessions)}** file(s) processed, **{failed}** failed."
    if problems:
        status_md += "\n\n" + "\n".join(f"- {p}" for p in problems)

    selected = sessions[0].id if sessions else None
    return status_md, _queue_rows(), gr.update(choices=_session_choices(), value=selected)


def show_session(session_id):
    """Render the overlay, selection and raw output for one session."""
    empty = (
        None,
        gr.update(choices=[], value=[], interactive=False),
        "*Select a file from the queue.*",
        "",
        "",
        None,
        None,
    )
    if not session_id:
        return empty
    try:
        session = _get_pipeline().get(session_id)
    except RedactlyError:
        return empty

    annotations = [
        (entity.box.to_pixel_rect(), _entity_label(entity))
        for entity in session.entities
    ]
    choices = [(_entity_label(e), e.id) for e in session.entities]
    editable = session.status is FileStatus.COMPLETED

    redacted = None
    download = None
    if session.status is FileStatus.REDACTED and session.output is not None:
        redacted = _preview(session.output)
        download = _write_download(session.output_filename, session.output)

    return (
        (_preview(session.content), annotations),
        gr.update(choices=choices, value=sorted(session.selection), interactive=editable),
        _status_line(session),
        session.ocr_text,
        session.raw_response,
        redacted,
        download,
    )


def apply_selection(session_id, entity_ids):
    """Replace the session's selection with the checked entities."""
    if not session_id:
        raise gr.Error("Select a file first.")
    try:
        session = _get_pipeline().get(session_id)
        session.replace_selection(entity_ids or [])
    except RedactlyError as e:
        raise gr.Error(str(e))
    return _status_line(session), _queue_rows()


def select_all(session_id):
    if not session_id:
        raise gr.Error("Select a file first.")
    try:
        session = _get_pipeline().get(session_id)
        session.select_all()
    except RedactlyError as e:
        raise gr.Error(str(e))
    return gr.update(value=sorted(session.selection)), _status_line(session), _queue_rows()


def deselect_all(session_id):
    if not session_id:
        raise gr.Error("Select a file first.")
    try:
        session = _get_pipeline().get(session_id)
        session.deselect_all()
    except RedactlyError as e:
        raise gr.Error(str(e))
    return gr.update(value=[]), _status_line(session), _queue_rows()


async def suggest_redactions(session_id, criteria):
    """Ask the suggestion service which entities to redact."""
    if not session_id:
        raise gr.Error("Select a file first.")
    pipeline = _get_pipeline()
    try:
        suggestion = await pipeline.suggest(session_id, criteria or DEFAULT_CRITERIA)
        session = pipeline.get(session_id)
    except RedactlyError as e:
        raise gr.Error(str(e))

    reasoning = suggestion.rationale or "*No reasoning returned.*"
    if suggestion.dropped:
        reasoning += f"\n\n*{suggestion.dropped} suggested region(s) matched no detected item.*"
    return (
        gr.update(value=sorted(session.selection)),
        _status_line(session),
        f"### AI Reasoning\n\n{reasoning}",
        _queue_rows(),
    )


async def redact_session(session_id, style, fill_color, opacity, pixelate_amount):
    """Composite the selected regions and offer the result for download."""
    if not session_id:
        raise gr.Error("Select a file first.")
    try:
        options = RedactionOptions(
            style=style,
            fill_color=fill_color or "#3F51B5",
            opacity=float(opacity),
            pixelate_amount=float(pixelate_amount),
        )
    except ValueError as e:
        raise gr.Error(str(e))

    pipeline = _get_pipeline()
    try:
        session = await pipeline.redact(session_id, options)
    except RedactlyError as e:
        raise gr.Error(str(e))

    if session.output is None:
        raise gr.Error("The file was removed before redaction finished.")
    return (
        _preview(session.output),
        _write_download(session.output_filename, session.output),
        _status_line(session),
        _queue_rows(),
    )


def download_all():
    """Bundle every redacted image into one zip archive."""
    try:
        archive = _get_pipeline().redacted_archive()
    except RedactlyError as e:
        raise gr.Error(str(e))
    return _write_download("redacted.zip", archive)


def remove_session(session_id):
    if session_id:
        try:
            _get_pipeline().remove(session_id)
        except RedactlyError as e:
            raise gr.Error(str(e))
    return _queue_rows(), gr.update(choices=_session_choices(), value=None)


def refresh_queue():
    return _queue_rows(), gr.update(choices=_session_choices())


def refresh_dashboard():
    """Build the queue dashboard from the current sessions."""
    pipeline = _get_pipeline()
    summary = pipeline.summary()
    if not summary["total_sessions"]:
        return "### Queue Dashboard\n\n*No files queued yet.*", []

    summary_md = f"""### Queue Dashboard

| Metric | Value |
|--------|-------|
| **Files Queued** | {summary["total_sessions"]} / {summary["capacity"]} |
| **Items Detected** | {summary["total_entities"]} |
| **Items Selected** | {summary["total_selected"]} |
| **Files Redacted** | {summary["total_redacted"]} |

### Files by Status

| Status | Count |
|--------|-------|
"""
    for status_name, count in summary["by_status"].items():
        summary_md += f"| {status_name} | {count} |\n"

    if summary["by_entity_type"]:
        summary_md += "\n### Detected Items by Type\n\n| Type | Count |\n|------|-------|\n"
        for entity_type, count in summary["by_entity_type"].items():
            summary_md += f"| {entity_type} | {count} |\n"

    recent_rows = [
        [s.filename, s.status.value, len(s.entities), s.created_at.strftime("%Y-%m-%d %H:%M:%S")]
        for s in reversed(pipeline.list()[-15:])
    ]
    return summary_md, recent_rows


CUSTOM_CSS = """
.gradio-container { max-width: 1280px !important; }
.status-banner { font-size: 1.05em; }
footer { display: none !important; }
"""


def create_ui() -> gr.Blocks:
    """Create and return the Gradio Blocks application."""
    with gr.Blocks(
        title="Redactly",
        theme=gr.themes.Soft(
            primary_hue="indigo",
            secondary_hue="slate",
            neutral_hue="slate",
        ),
        css=CUSTOM_CSS,
    ) as demo:

        gr.Markdown(
            """
            # Redactly
            Upload document images, review the detected personal information
            and signatures, and download redacted copies.
            """
        )

        with gr.Tabs():

            with gr.Tab("Redact", id="redact"):

                with gr.Row():
                    with gr.Column(scale=2):
                        file_input = gr.File(
                            label="Upload Images",
                            file_count="multiple",
                            file_types=[".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp", ".tif", ".tiff"],
                            type="filepath",
                        )
                    with gr.Column(scale=1):
                        use_llm_input = gr.Checkbox(
                            value=True,
                            label="Use LLM",
                            info="Let the detection service run its LLM pass",
                        )
                        upload_btn = gr.Button("Upload & Detect", variant="primary", size="lg")

                upload_status = gr.Markdown(elem_classes=["status-banner"])

                queue_table = gr.Dataframe(
                    headers=QUEUE_HEADERS,
                    datatype=["str", "str", "number", "number", "number", "str"],
                    interactive=False,
                    wrap=True,
                )

                with gr.Row():
                    session_picker = gr.Dropdown(label="File", choices=[], interactive=True, scale=3)
                    refresh_queue_btn = gr.Button("Refresh", size="sm", scale=1)
                    remove_btn = gr.Button("Remove", size="sm", variant="stop", scale=1)

                session_status = gr.Markdown(
                    value="*Select a file from the queue.*",
                    elem_classes=["status-banner"],
                )

                with gr.Row():
                    with gr.Column(scale=3):
                        overlay = gr.AnnotatedImage(label="Detected Items")
                    with gr.Column(scale=2):
                        entity_checks = gr.CheckboxGroup(
                            label="Items to redact",
                            choices=[],
                            interactive=False,
                        )
                        with gr.Row():
                            select_all_btn = gr.Button("Select all", size="sm")
                            deselect_all_btn = gr.Button("Deselect all", size="sm")

                with gr.Accordion("AI Suggestions", open=False):
                    criteria_input = gr.Textbox(
                        value=DEFAULT_CRITERIA,
                        label="Redaction criteria",
                        lines=3,
                    )
                    suggest_btn = gr.Button("Suggest Redactions")
                    reasoning_output = gr.Markdown()

                gr.Markdown("### Redaction Style")
                with gr.Row():
                    style_input = gr.Radio(
                        choices=STYLE_CHOICES,
                        value=RedactionStyle.SOLID_FILL.value,
                        label="Style",
                    )
                    color_input = gr.ColorPicker(value="#3F51B5", label="Fill color")
                    opacity_input = gr.Slider(
                        minimum=0, maximum=1, value=1, step=0.05,
                        label="Black box opacity",
                    )
                    pixelate_input = gr.Slider(
                        minimum=MIN_PIXELATE_AMOUNT, maximum=MAX_PIXELATE_AMOUNT // 2, value=10, step=1,
                        label="Pixelation amount (%)",
                    )

                redact_btn = gr.Button("Redact Selected", variant="primary", size="lg")

                with gr.Row():
                    redacted_preview = gr.Image(label="Redacted", type="pil", interactive=False)
                    with gr.Column():
                        download_output = gr.File(label="Download Redacted Image", interactive=False)
                        download_all_btn = gr.Button("Download All Redacted", size="sm")
                        download_all_output = gr.File(label="All Redacted Images", interactive=False)

            with gr.Tab("Raw Output", id="raw"):
                ocr_output = gr.Textbox(label="OCR Text", lines=12, interactive=False)
                raw_output = gr.Code(label="Detection Response", language="json", interactive=False)

            with gr.Tab("Queue Dashboard", id="dashboard"):
                refresh_btn = gr.Button("Refresh Dashboard", size="sm")
                dashboard_md = gr.Markdown(value="*No files queued yet.*")
                gr.Markdown("### Recent Files")
                recent_table = gr.Dataframe(
                    headers=["Filename", "Status", "Items", "Uploaded"],
                    datatype=["str", "str", "number", "str"],
                    interactive=False,
                    wrap=True,
                )

        session_outputs = [
            overlay,
            entity_checks,
            session_status,
            ocr_output,
            raw_output,
            redacted_preview,
            download_output,
        ]

        upload_btn.click(
            fn=upload_files,
            inputs=[file_input, use_llm_input],
            outputs=[upload_status, queue_table, session_picker],
        ).then(
            fn=refresh_dashboard,
            inputs=[],
            outputs=[dashboard_md, recent_table],
        )

        session_picker.change(fn=show_session, inputs=[session_picker], outputs=session_outputs)

        refresh_queue_btn.click(fn=refresh_queue, inputs=[], outputs=[queue_table, session_picker])
        remove_btn.click(
            fn=remove_session,
            inputs=[session_picker],
            outputs=[queue_table, session_picker],
        )

        entity_checks.input(
            fn=apply_selection,
            inputs=[session_picker, entity_checks],
            outputs=[session_status, queue_table],
        )
        select_all_btn.click(
            fn=select_all,
            inputs=[session_picker],
            outputs=[entity_checks, session_status, queue_table],
        )
        deselect_all_btn.click(
            fn=deselect_all,
            inputs=[session_picker],
            outputs=[entity_checks, session_status, queue_table],
        )

        suggest_btn.click(
            fn=suggest_redactions,
            inputs=[session_picker, criteria_input],
            outputs=[entity_checks, session_status, reasoning_output, queue_table],
        )

        redact_btn.click(
            fn=redact_session,
            inputs=[session_picker, style_input, color_input, opacity_input, pixelate_input],
            outputs=[redacted_preview, download_output, session_status, queue_table],
        ).then(
            fn=refresh_dashboard,
            inputs=[],
            outputs=[dashboard_md, recent_table],
        )

        download_all_btn.click(fn=download_all, inputs=[], outputs=[download_all_output])

        refresh_btn.click(
            fn=refresh_dashboard,
            inputs=[],
            outputs=[dashboard_md, recent_table],
        )

    return demo
