"""
Mock strategy

Deterministic, network-free backend. Used as the fallback whenever the
requested backend fails, and usable directly for offline runs. Headline metric
values are left as ``N/A`` since the metric overwrite replaces them with
ground truth.
"""

import json
from typing import AsyncIterator

from .base import AnalysisStrategy

FRAGMENT_SIZE = 64

MOCK_REPORTS = {
    "en": {
        "executiveSummary": (
            "The company delivered stable results for the period. Revenue and "
            "profitability are summarised from the structured financial facts; "
            "this report was produced by the offline fallback analyst."),
        "keyMetrics": [
            {"metricName": "Revenue", "value": "N/A",
             "interpretation": "Top-line scale for the period.",
             "sentiment": "neutral"},
            {"metricName": "Gross Margin", "value": "N/A",
             "interpretation": "Pricing power and cost of sales efficiency.",
             "sentiment": "neutral"},
            {"metricName": "Net Income", "value": "N/A",
             "interpretation": "Bottom-line profitability.",
             "sentiment": "positive"},
            {"metricName": "Revenue YoY Growth", "value": "N/A",
             "interpretation": "Year-over-year change in revenue.",
             "sentiment": "neutral"},
        ],
        "businessDrivers": [
            {"title": "Product Innovation",
             "description": "Core product lines continue to drive demand.",
             "impact": "high"},
        ],
        "riskFactors": [
            {"category": "Market Risk",
             "description": "Macroeconomic conditions may weigh on demand.",
             "severity": "medium"},
        ],
        "bullCase": "Sustained demand and margin discipline support earnings growth.",
        "bearCase": "Slowing demand or cost pressure could compress margins.",
        "citations": [
            {"section": "MD&A",
             "excerpt": ("Revenue growth primarily driven by strong performance "
                         "in core product lines"),
             "excerptZh": ""},
        ],
        "dupontAnalysis": {
            "netProfitMargin": "N/A",
            "assetTurnover": "N/A",
            "equityMultiplier": "N/A",
            "returnOnEquity": "N/A",
            "interpretation": "Return on equity decomposition is not available offline.",
        },
        "insightEngine": {
            "accountingChanges": [],
            "rootCauseAnalysis": [
                {"metric": "Revenue",
                 "reason": "Demand for core products",
                 "evidence": "MD&A"},
            ],
        },
        "factorAnalysis": {
            "revenueBridge": [
                {"name": "Volume", "impact": "N/A",
                 "description": "Unit demand across product lines."},
            ],
            "marginBridge": [
                {"name": "Mix", "impact": "N/A",
                 "description": "Product and services mix."},
            ],
        },
    },
    "zh": {
        "executiveSummary": "公司本期业绩保持稳定。营收与盈利能力数据来自结构化财务事实，本报告由离线备用分析器生成。",
        "keyMetrics": [
            {"metricName": "营收", "value": "N/A",
             "interpretation": "本期收入规模。", "sentiment": "neutral"},
            {"metricName": "毛利率", "value": "N/A",
             "interpretation": "定价能力与成本效率。", "sentiment": "neutral"},
            {"metricName": "净利润", "value": "N/A",
             "interpretation": "最终盈利能力。", "sentiment": "positive"},
            {"metricName": "营收同比增长", "value": "N/A",
             "interpretation": "营收同比变化。", "sentiment": "neutral"},
        ],
        "businessDrivers": [
            {"title": "产品创新", "description": "核心产品线持续推动需求。",
             "impact": "high"},
        ],
        "riskFactors": [
            {"category": "市场风险", "description": "宏观经济环境可能影响需求。",
             "severity": "medium"},
        ],
        "bullCase": "需求持续且利润率稳定，支撑盈利增长。",
        "bearCase": "需求放缓或成本压力可能压缩利润率。",
        "citations": [
            {"section": "MD&A",
             "excerpt": ("Revenue growth primarily driven by strong performance "
                         "in core product lines"),
             "excerptZh": "收入增长主要由核心产品线的强劲表现推动"},
        ],
        "dupontAnalysis": {
            "netProfitMargin": "N/A",
            "assetTurnover": "N/A",
            "equityMultiplier": "N/A",
            "returnOnEquity": "N/A",
            "interpretation": "离线模式下无法提供净资产收益率分解。",
        },
        "insightEngine": {
            "accountingChanges": [],
            "rootCauseAnalysis": [
                {"metric": "营收",
                 "reason": "核心产品需求",
                 "evidence": "MD&A"},
            ],
        },
        "factorAnalysis": {
            "revenueBridge": [
                {"name": "销量", "impact": "N/A",
                 "description": "各产品线的单位需求。"},
            ],
            "marginBridge": [
                {"name": "产品结构", "impact": "N/A",
                 "description": "产品与服务收入结构。"},
            ],
        },
    },
}


class MockStrategy(AnalysisStrategy):
    """Offline analyst returning a fixed report per language"""

    name = "mock"
    model_name = "mock-analyst"

    def render(self, language: str) -> str:
        report = MOCK_REPORTS.get(language, MOCK_REPORTS["en"])
        return json.dumps(report, ensure_ascii=False)

    async def stream(self, system_prompt: str, user_prompt: str,
                     language: str) -> AsyncIterator[str]:
        text = self.render(language)
        for start in range(0, len(text), FRAGMENT_SIZE):
            yield text[start:start + FRAGMENT_SIZE]
