"""Field resolution: overrides, positional defaults and missing categories."""

import unittest

from waterfall_layout.fields import (
    FailureKind,
    Field,
    FieldMeta,
    FieldResolution,
    LayoutFailure,
    PivotSeries,
    resolve_fields,
)


class FieldResolverTests(unittest.TestCase):

    def setUp(self):
        self.meta = FieldMeta.build(
            dimensions=["orders.stage", "orders.region"],
            pivots=["new", "existing"],
            measures=["orders.amount", "orders.count"],
        )

    def test_positional_defaults(self):
        result = resolve_fields(self.meta)
        self.assertIsInstance(result, FieldResolution)
        self.assertEqual(result.stage_dimension.name, "orders.stage")
        self.assertEqual(result.measure.name, "orders.amount")
        self.assertEqual([p.key for p in result.pivots], ["new", "existing"])
        self.assertIsNone(result.sort_field)

    def test_overrides_win_when_present(self):
        result = resolve_fields(
            self.meta,
            stage_dimension_override="orders.region",
            measure_override="orders.count",
            sort_field_override="orders.stage_order",
        )
        self.assertEqual(result.stage_dimension.name, "orders.region")
        self.assertEqual(result.measure.name, "orders.count")
        self.assertEqual(result.sort_field, "orders.stage_order")

    def test_unknown_override_falls_back_to_first(self):
        result = resolve_fields(self.meta, stage_dimension_override="nope", measure_override="nope")
        self.assertEqual(result.stage_dimension.name, "orders.stage")
        self.assertEqual(result.measure.name, "orders.amount")

    def test_missing_dimension(self):
        meta = FieldMeta.build(pivots=["a"], measures=["m"])
        result = resolve_fields(meta)
        self.assertIsInstance(result, LayoutFailure)
        self.assertEqual(result.kind, FailureKind.MISSING_STAGE_DIMENSION)

    def test_missing_pivots_only_fails_when_required(self):
        meta = FieldMeta.build(dimensions=["s"], measures=["m"])
        self.assertEqual(resolve_fields(meta).kind, FailureKind.MISSING_PIVOT_BREAKDOWN)
        self.assertIsInstance(resolve_fields(meta, require_pivots=False), FieldResolution)

    def test_missing_measure(self):
        meta = FieldMeta.build(dimensions=["s"], pivots=["a"])
        self.assertEqual(resolve_fields(meta).kind, FailureKind.MISSING_MEASURE)

    def test_first_missing_category_is_reported(self):
        result = resolve_fields(FieldMeta())
        self.assertEqual(result.kind, FailureKind.MISSING_STAGE_DIMENSION)
        self.assertEqual(result.to_dict()["error"], "MissingStageDimension")

    def test_from_query_response_shape(self):
        meta = FieldMeta.from_dict({
            "dimension_like": [{"name": "funnel.step", "label": "Step"}],
            "measure_like": [{"name": "funnel.users", "label_short": "Users"}],
            "pivots": [{"key": "web", "label": "Web"}, {"key": "app"}],
        })
        self.assertEqual(meta.dimensions, (Field("funnel.step", "Step"),))
        self.assertEqual(meta.measures[0].display_label, "Users")
        self.assertEqual(meta.pivots, (PivotSeries("web", "Web"), PivotSeries("app")))
        self.assertEqual(meta.pivots[1].display_label, "app")

    def test_bad_entry_raises(self):
        with self.assertRaises(ValueError):
            FieldMeta.build(dimensions=[42])


if __name__ == "__main__":
    unittest.main()
