"""Tests for headline metric formatting and overwrite."""

import re
from decimal import Decimal

import pytest

from financial_report_rag.analysis import (AnalysisReport, MetricInsight,
                                           format_currency, format_percent,
                                           overwrite_key_metrics)


class TestFormatting:

    @pytest.mark.parametrize("value, expected", [
        (Decimal("94930000000"), "$94.93B"),
        (Decimal("2500000000000"), "$2.50T"),
        (Decimal("1234567"), "$1.23M"),
        (Decimal("999.995"), "$1,000.00"),
        (Decimal("-2910000000"), "-$2.91B"),
        (None, "N/A"),
    ])
    def test_format_currency(self, value, expected):
        assert format_currency(value) == expected

    def test_non_usd_prefix(self):
        assert format_currency(Decimal("5000000000"), "eur") == "EUR 5.00B"

    @pytest.mark.parametrize("value, expected", [
        (Decimal("0.0607"), "6.07%"),
        (Decimal("0.4491"), "44.91%"),
        (Decimal("-0.0125"), "-1.25%"),
        (None, "N/A"),
    ])
    def test_format_percent(self, value, expected):
        assert format_percent(value) == expected

    @pytest.mark.parametrize("value", [
        Decimal("94930000000"), Decimal("1234567890123"), Decimal("7654321"),
    ])
    def test_currency_reparses_within_rounding(self, value):
        formatted = format_currency(value)
        number, suffix = re.match(r"\$([\d.]+)([TBM])", formatted).groups()
        scale = {"T": Decimal(10)**12, "B": Decimal(10)**9, "M": Decimal(10)**6}[suffix]

        assert abs(Decimal(number) * scale - value) <= scale / 200


def model_report(metrics):
    return AnalysisReport(executive_summary="Summary",
                          key_metrics=[MetricInsight(**m) for m in metrics])


class TestOverwrite:

    def test_headline_values_come_from_facts(self, aapl_facts):
        report = model_report([
            {"metric_name": "Revenue", "value": "$120B",
             "interpretation": "Strong iPhone demand", "sentiment": "positive"},
            {"metric_name": "Operating Margin", "value": "29.5%",
             "interpretation": "Efficient", "sentiment": "positive"},
            {"metric_name": "Revenue YoY Growth", "value": "12%",
             "interpretation": "Accelerating", "sentiment": "positive"},
        ])

        overwrite_key_metrics(report, aapl_facts, "en")

        names = [m.metric_name for m in report.key_metrics]
        assert names == ["Revenue", "Gross Margin", "Net Income",
                         "Revenue YoY Growth", "Operating Margin"]
        values = {m.metric_name: m.value for m in report.key_metrics}
        assert values["Revenue"] == "$94.93B"
        assert values["Gross Margin"] == "44.91%"
        assert values["Net Income"] == "$22.96B"
        assert values["Revenue YoY Growth"] == "6.07%"
        assert values["Operating Margin"] == "29.5%"
        assert report.currency == "USD"

    def test_interpretations_are_kept(self, aapl_facts):
        report = model_report([
            {"metric_name": "Revenue", "value": "1", "interpretation": "Demand held up",
             "sentiment": "neutral"},
            {"metric_name": "Revenue growth", "value": "2", "interpretation": "Faster",
             "sentiment": "neutral"},
        ])

        overwrite_key_metrics(report, aapl_facts, "en")

        by_name = {m.metric_name: m for m in report.key_metrics}
        assert by_name["Revenue"].interpretation == "Demand held up"
        assert by_name["Revenue YoY Growth"].interpretation == "Faster"
        assert by_name["Gross Margin"].interpretation == "Sourced from reported financial data."
        assert len(report.key_metrics) == 4

    def test_derived_metrics_are_kept(self, aapl_facts):
        report = model_report([
            {"metric_name": "Net Income Growth", "value": "-2%",
             "interpretation": "Tax charge", "sentiment": "negative"},
            {"metric_name": "Gross Margin Change", "value": "+0.6pp",
             "interpretation": "Services mix", "sentiment": "positive"},
            {"metric_name": "净利润同比变化", "value": "-2%",
             "interpretation": "税费影响", "sentiment": "negative"},
        ])

        overwrite_key_metrics(report, aapl_facts, "en")

        names = [m.metric_name for m in report.key_metrics]
        assert names == ["Revenue", "Gross Margin", "Net Income", "Revenue YoY Growth",
                         "Net Income Growth", "Gross Margin Change", "净利润同比变化"]
        by_name = {m.metric_name: m for m in report.key_metrics}
        assert by_name["Revenue YoY Growth"].interpretation == "Sourced from reported financial data."
        assert by_name["Net Income"].interpretation == "Sourced from reported financial data."

    def test_sentiment_follows_deltas(self, aapl_facts):
        report = overwrite_key_metrics(model_report([]), aapl_facts, "en")

        sentiments = {m.metric_name: m.sentiment for m in report.key_metrics}
        assert sentiments["Revenue"] == "positive"
        assert sentiments["Gross Margin"] == "positive"
        assert sentiments["Net Income"] == "negative"
        assert sentiments["Revenue YoY Growth"] == "positive"

    def test_chinese_names(self, aapl_facts):
        report = model_report([
            {"metric_name": "营收同比增长", "value": "10%", "interpretation": "增长稳健",
             "sentiment": "positive"},
        ])

        overwrite_key_metrics(report, aapl_facts, "zh")

        assert [m.metric_name for m in report.key_metrics] == [
            "营收", "毛利率", "净利润", "营收同比增长"]
        assert report.key_metrics[3].interpretation == "增长稳健"
        assert report.key_metrics[0].interpretation == "数据来源于已披露的财务报表。"

    def test_headline_values_parse_back_to_facts(self, aapl_facts):
        report = overwrite_key_metrics(model_report([]), aapl_facts, "en")
        values = [m.value for m in report.key_metrics]

        assert abs(Decimal(values[0].strip("$B")) * 10**9 - aapl_facts.revenue) <= Decimal("5e6")
        assert Decimal(values[1].rstrip("%")) / 100 == aapl_facts.gross_margin
        assert abs(Decimal(values[2].strip("$B")) * 10**9 - aapl_facts.net_income) <= Decimal("5e6")
        assert Decimal(values[3].rstrip("%")) / 100 == aapl_facts.revenue_yoy
