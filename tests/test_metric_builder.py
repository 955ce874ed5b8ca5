import io
import unittest
from contextlib import redirect_stdout

from twse_exporter.errors import TransformError
from twse_exporter.schemas.quote import QuoteRecord
from twse_exporter.services.metric_builder import (
    build_instruments,
    build_registry,
    metric_help,
    metric_name,
    parse_price,
    render_metrics,
    sanitize_metric_name,
)


def _record(ex="tse", c="2330", pz="593.0000", **extra):
    payload = {"ex": ex, "c": c, "n": "台積電", "d": "20240105", "%": "13:30:00", "pz": pz}
    payload.update(extra)
    return QuoteRecord.model_validate(payload)


class MetricNamingTest(unittest.TestCase):
    def test_metric_name_from_exchange_and_category(self):
        self.assertEqual(metric_name(_record()), "tse_2330_gauge")

    def test_disallowed_characters_are_replaced(self):
        self.assertEqual(metric_name(_record(ex="tse", c="00878.tw")), "tse_00878_tw_gauge")
        self.assertEqual(metric_name(_record(ex="o-t c", c="6488")), "o_t_c_6488_gauge")

    def test_leading_digit_gets_underscore_prefix(self):
        self.assertEqual(sanitize_metric_name("1234_gauge"), "_1234_gauge")
        self.assertEqual(metric_name(_record(ex="", c="2330")), "_2330_gauge")

    def test_help_text_interpolates_record_fields(self):
        self.assertEqual(metric_help(_record()), "tse_台積電於20240105 13:30:00的價格593.0000")


class ParsePriceTest(unittest.TestCase):
    def test_parses_decimal_strings(self):
        self.assertEqual(parse_price(_record(pz="593.0000")), 593.0)
        self.assertEqual(parse_price(_record(pz=" 12.5 ")), 12.5)
        self.assertEqual(parse_price(_record(pz="+1.5")), 1.5)
        self.assertEqual(parse_price(_record(pz=".5")), 0.5)
        self.assertEqual(parse_price(_record(pz="593.")), 593.0)
        self.assertEqual(parse_price(_record(pz="1e3")), 1000.0)

    def test_rejects_non_numeric_prices(self):
        for raw in ["-", "", "abc", "nan", "inf", "1_000", "\uff11\uff12\uff13", "0x10", "1.2.3", "1e999"]:
            with self.subTest(raw=raw):
                with self.assertRaises(TransformError):
                    parse_price(_record(pz=raw), index=3)

    def test_error_identifies_record(self):
        with self.assertRaises(TransformError) as ctx:
            parse_price(_record(c="2317", pz="-"), index=1)

        self.assertEqual(ctx.exception.record_index, 1)
        self.assertIn("tse_2317", str(ctx.exception))


class BuildInstrumentsTest(unittest.TestCase):
    def test_one_instrument_per_record(self):
        records = [_record(c="2330", pz="593.0"), _record(c="2317", pz="104.5"), _record(ex="otc", c="6488", pz="512")]

        instruments = build_instruments(records)

        self.assertEqual([i.name for i in instruments], ["tse_2330_gauge", "tse_2317_gauge", "otc_6488_gauge"])
        self.assertEqual([i.value for i in instruments], [593.0, 104.5, 512.0])

    def test_bad_price_aborts_whole_batch(self):
        records = [_record(c="2330"), _record(c="2317", pz="-"), _record(c="2454")]

        with self.assertRaises(TransformError) as ctx:
            build_instruments(records)
        self.assertEqual(ctx.exception.record_index, 1)

    def test_duplicate_metric_name_is_an_error(self):
        records = [_record(c="2330", pz="593.0"), _record(c="2330", pz="594.0")]

        with self.assertRaises(TransformError) as ctx:
            build_instruments(records)

        self.assertEqual(ctx.exception.metric_name, "tse_2330_gauge")
        self.assertEqual(ctx.exception.record_index, 1)

    def test_names_colliding_after_sanitizing_are_an_error(self):
        records = [_record(c="0050.a"), _record(c="0050_a")]

        with self.assertRaises(TransformError):
            build_instruments(records)

    def test_empty_records_yield_empty_output(self):
        self.assertEqual(build_instruments([]), [])
        self.assertEqual(render_metrics([]), b"")


class RenderMetricsTest(unittest.TestCase):
    def test_renders_exposition_format(self):
        body = render_metrics([_record(c="2330", pz="593.0000")]).decode("utf-8")

        self.assertIn("# HELP tse_2330_gauge tse_台積電於20240105 13:30:00的價格593.0000", body)
        self.assertIn("# TYPE tse_2330_gauge gauge", body)
        self.assertIn("tse_2330_gauge 593.0", body)

    def test_each_call_uses_a_fresh_registry(self):
        first = build_registry(build_instruments([_record(c="2330")]))
        second = build_registry(build_instruments([_record(c="2330")]))

        self.assertIsNot(first, second)
        self.assertEqual(first.get_sample_value("tse_2330_gauge"), 593.0)
        self.assertEqual(second.get_sample_value("tse_2330_gauge"), 593.0)

        third = build_registry(build_instruments([_record(c="2317", pz="104.5")]))
        self.assertIsNone(third.get_sample_value("tse_2330_gauge"))

    def test_render_logs_gauge_count(self):
        out = io.StringIO()
        with redirect_stdout(out):
            body = render_metrics([_record(c="2330"), _record(c="2317", pz="104.5")])

        self.assertEqual(out.getvalue().strip(), f"[METRICS][built] gauges=2 bytes={len(body)}")

    def test_repeated_render_is_byte_identical(self):
        records = [_record(c="2330"), _record(c="2317", pz="104.5")]

        self.assertEqual(render_metrics(records), render_metrics(records))


if __name__ == "__main__":
    unittest.main()
