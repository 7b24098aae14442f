"""Unit tests for bounding-box geometry: normalization, equality, pixel rects."""

import pytest

from redactly.models.geometry import DEFAULT_EPSILON, BoundingBox, equals, normalize


class TestNormalize:
    def test_ordered_in_bounds_box_unchanged(self):
        box = BoundingBox(10, 20, 30, 40)
        assert normalize(box, 100, 100) == box

    def test_swapped_corners_are_ordered(self):
        result = normalize(BoundingBox(30, 40, 10, 20), 100, 100)
        assert result == BoundingBox(10, 20, 30, 40)

    def test_clamped_to_image_bounds(self):
        result = normalize(BoundingBox(-5, -10, 150, 120), 100, 80)
        assert result == BoundingBox(0, 0, 100, 80)

    def test_box_entirely_outside_becomes_empty(self):
        result = normalize(BoundingBox(120, 10, 150, 20), 100, 100)
        assert result.is_empty

    def test_normalized_box_never_has_negative_size(self):
        for box in [BoundingBox(5, 5, 1, 1), BoundingBox(-50, 200, -10, 300)]:
            result = normalize(box, 100, 100)
            assert result.width >= 0
            assert result.height >= 0

    def test_method_delegates_to_function(self):
        box = BoundingBox(30, 40, 10, 20)
        assert box.normalize(100, 100) == normalize(box, 100, 100)


class TestEquals:
    def test_identical_boxes_equal(self):
        assert equals(BoundingBox(1, 2, 3, 4), BoundingBox(1, 2, 3, 4))

    def test_within_epsilon_equal(self):
        a = BoundingBox(10.0, 20.0, 30.0, 40.0)
        b = BoundingBox(10.005, 19.995, 30.0, 40.009)
        assert equals(a, b)

    def test_beyond_epsilon_not_equal(self):
        a = BoundingBox(10.0, 20.0, 30.0, 40.0)
        b = BoundingBox(10.0, 20.0, 30.0, 40.5)
        assert not equals(a, b)

    def test_custom_epsilon(self):
        a = BoundingBox(10.0, 20.0, 30.0, 40.0)
        b = BoundingBox(10.4, 20.0, 30.0, 40.0)
        assert not a.equals(b)
        assert a.equals(b, epsilon=0.5)

    def test_default_epsilon_is_sub_pixel(self):
        assert 0 < DEFAULT_EPSILON < 1


class TestConversions:
    def test_list_form(self):
        box = BoundingBox.from_list([1, 2, 3, 4])
        assert box.to_list() == [1.0, 2.0, 3.0, 4.0]

    def test_from_list_requires_four_values(self):
        with pytest.raises(ValueError):
            BoundingBox.from_list([1, 2, 3])

    def test_dict_form(self):
        box = BoundingBox(1, 2, 3, 4)
        assert BoundingBox.from_dict(box.to_dict()) == box

    def test_pixel_rect_covers_fractional_edges(self):
        assert BoundingBox(10.2, 20.7, 30.1, 40.9).to_pixel_rect() == (10, 20, 31, 41)

    def test_pixel_rect_of_integer_box_is_exact(self):
        assert BoundingBox(10, 20, 30, 40).to_pixel_rect() == (10, 20, 30, 40)

    @pytest.mark.parametrize(
        "box",
        [BoundingBox(10, 10, 10, 50), BoundingBox(10, 10, 50, 10), BoundingBox(10, 10, 5, 50)],
    )
    def test_zero_or_negative_area_is_empty(self, box):
        assert box.is_empty
