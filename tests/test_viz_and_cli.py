"""Smoke tests for the reference renderer and the command-line interface."""

import contextlib
import io
import json
import os
import tempfile
import unittest

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from waterfall_layout import FieldMeta, LayoutConfig, build_layout
from waterfall_layout.cli import EXIT_LAYOUT_FAILURE, main
from waterfall_layout.viz_waterfall import plot_stacked_waterfall


class RendererTests(unittest.TestCase):

    def test_one_bar_per_rendering_segment(self):
        rows = [
            {"stage": "Start", "amount": {"x": 100, "y": 50}},
            {"stage": "Drop", "amount": {"x": 30, "y": 0}},
        ]
        meta = FieldMeta.build(dimensions=["stage"], pivots=["x", "y"], measures=["amount"])
        layout = build_layout(rows, meta, LayoutConfig(start_stage_label="Start",
                                                       treat_after_start_as_negative=True))
        fig, ax = plot_stacked_waterfall(layout, title="Walk")
        try:
            self.assertEqual(len(ax.patches), 3)
            self.assertEqual(ax.get_title(), "Walk")
            self.assertEqual([t.get_text() for t in ax.get_xticklabels()], ["Start", "Drop"])
        finally:
            plt.close(fig)


class CliTests(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.csv = os.path.join(self.tmpdir.name, "walk.csv")
        pd.DataFrame(
            [
                {"stage": "Start", "pivot": "X", "value": 100},
                {"stage": "Start", "pivot": "Y", "value": 50},
                {"stage": "Drop", "pivot": "X", "value": 30},
                {"stage": "Drop", "pivot": "Y", "value": 10},
            ]
        ).to_csv(self.csv, index=False)

    def tearDown(self):
        self.tmpdir.cleanup()

    def _run(self, *argv):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main(list(argv))
        return code, out.getvalue()

    def test_prints_layout_json(self):
        code, out = self._run(self.csv, "--start-stage", "Start", "--after-start-negative")
        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertEqual([s["signed_total"] for s in payload["stages"]], [150.0, -40.0])
        self.assertEqual(payload["sign_tier"], "start_stage")

    def test_negative_stages_flag(self):
        code, out = self._run(self.csv, "--negative-stages", "Start")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["stages"][0]["signed_total"], -150.0)

    def test_saves_plot(self):
        png = os.path.join(self.tmpdir.name, "walk.png")
        code, _ = self._run(self.csv, "--plot", png)
        self.assertEqual(code, 0)
        self.assertTrue(os.path.exists(png))
        plt.close("all")

    def test_failure_exit_code(self):
        config = os.path.join(self.tmpdir.name, "c.yaml")
        with open(config, "w") as f:
            f.write("waterfall:\n  require_pivots: true\n")
        empty_csv = os.path.join(self.tmpdir.name, "empty.csv")
        with open(empty_csv, "w") as f:
            f.write("stage,pivot,value\n")
        code, out = self._run(empty_csv, "--config", config)
        self.assertEqual(code, EXIT_LAYOUT_FAILURE)
        self.assertEqual(json.loads(out)["error"], "MissingPivotBreakdown")


class CliConfigTests(unittest.TestCase):
    """Config-file settings and unreadable values on the CSV path."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmpdir.cleanup()

    def _write(self, name, text):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, "w") as f:
            f.write(text)
        return path

    def _run(self, *argv):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main(list(argv))
        return code, json.loads(out.getvalue())

    def test_sort_field_from_yaml_orders_stages(self):
        csv = self._write("steps.csv", "stage,pivot,value,step\nDrop,X,30,2\nStart,X,100,1\n")
        config = self._write("sort.yaml", "waterfall:\n  sort_field: step\n")
        code, payload = self._run(csv, "--config", config)
        self.assertEqual(code, 0)
        self.assertEqual([s["label"] for s in payload["stages"]], ["Start", "Drop"])
        self.assertEqual([s["signed_total"] for s in payload["stages"]], [100.0, -30.0])

    def test_sort_field_missing_from_csv_keeps_csv_order(self):
        csv = self._write("plain.csv", "stage,pivot,value\nDrop,X,30\nStart,X,100\n")
        config = self._write("sort.yaml", "waterfall:\n  sort_field: step\n")
        code, payload = self._run(csv, "--config", config)
        self.assertEqual(code, 0)
        self.assertEqual([s["label"] for s in payload["stages"]], ["Drop", "Start"])

    def test_unreadable_value_is_reported(self):
        csv = self._write("bad.csv", "stage,pivot,value\nStart,X,100\nStart,Y,abc\nDrop,X,30\n")
        code, payload = self._run(csv)
        self.assertEqual(code, 0)
        self.assertEqual([s["signed_total"] for s in payload["stages"]], [100.0, -30.0])
        self.assertEqual([w["warning"] for w in payload["warnings"]], ["InvalidNumericCell"])
        self.assertEqual(payload["warnings"][0]["count"], 1)


if __name__ == "__main__":
    unittest.main()
