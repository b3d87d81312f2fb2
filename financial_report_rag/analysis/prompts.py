"""
Prompt templates for financial analysis

System and user prompts per report language, rendered with langchain
``ChatPromptTemplate`` from an AnalysisContract.
"""

import json
import logging
from typing import Dict, Tuple

from langchain_core.prompts import ChatPromptTemplate

from .contract import AnalysisContract, DEFAULT_TASKS, Language

logger = logging.getLogger(__name__)

SYSTEM_PROMPTS = {
    Language.EN:
    """You are a senior equity research analyst. You write concise, evidence-based
analyses of public companies from their SEC filings.

Rules:
- The FINANCIAL FACTS are authoritative. Every number you write must come from them.
- Never invent figures, growth rates or margins that are not in the facts.
- Use the FILING EVIDENCE for qualitative reasoning. Citation excerpts must be copied
  word for word from the evidence.
- If the evidence is missing, base the narrative on the facts and say so.
- Respond in English.""",
    Language.ZH:
    """你是一名资深股票研究分析师，根据美国证券交易委员会(SEC)的公司文件撰写简洁、有据可查的分析。

规则：
- 财务数据(FINANCIAL FACTS)是权威来源，你写的每一个数字都必须来自这些数据。
- 不得编造财务数据中没有的数字、增长率或利润率。
- 定性分析请使用文件证据(FILING EVIDENCE)。引用摘录(excerpt)必须逐字复制自英文原文证据，并在 excerptZh 中给出中文翻译。
- 如果缺少文件证据，请仅基于财务数据进行分析并加以说明。
- 请使用简体中文回答。""",
}

USER_TEMPLATE = """Analyze {company_name} ({ticker}) for the period {period}.

## FINANCIAL FACTS
{financial_facts}

## FILING EVIDENCE
{text_evidence}

## TASKS
{analysis_tasks}"""

OUTPUT_INSTRUCTIONS = """Respond with ONLY a JSON object, no markdown and no commentary, using this structure:
{{
  "executiveSummary": "2-3 sentence overview",
  "keyMetrics": [
    {{"metricName": "Revenue", "value": "$94.93B", "interpretation": "...", "sentiment": "positive|negative|neutral"}}
  ],
  "businessDrivers": [{{"title": "...", "description": "...", "impact": "high|medium|low"}}],
  "riskFactors": [{{"category": "...", "description": "...", "severity": "high|medium|low"}}],
  "bullCase": "...",
  "bearCase": "...",
  "citations": [{{"section": "MD&A", "excerpt": "verbatim sentence from the evidence", "excerptZh": "..."}}],
  "dupontAnalysis": {{"netProfitMargin": "...", "assetTurnover": "...", "equityMultiplier": "...", "returnOnEquity": "...", "interpretation": "..."}},
  "insightEngine": {{
    "accountingChanges": [{{"policyName": "...", "changeDescription": "...", "riskAssessment": "..."}}],
    "rootCauseAnalysis": [{{"metric": "...", "reason": "...", "evidence": "..."}}]
  }},
  "factorAnalysis": {{
    "revenueBridge": [{{"name": "...", "impact": "...", "description": "..."}}],
    "marginBridge": [{{"name": "...", "impact": "...", "description": "..."}}]
  }}
}}
Include at least these keyMetrics: {metric_names}."""

NO_EVIDENCE_NOTICE = {
    Language.EN:
    "No filing evidence is available. Base the analysis on the financial facts only.",
    Language.ZH: "暂无文件证据，请仅基于财务数据进行分析。",
}

METRIC_NAMES = {
    Language.EN: "Revenue, Gross Margin, Net Income, Revenue YoY Growth",
    Language.ZH: "营收, 毛利率, 净利润, 营收同比增长",
}


class PromptRenderer:
    """Renders system and user prompts from an AnalysisContract"""

    def __init__(self):
        self.templates: Dict[Language, ChatPromptTemplate] = {
            language: ChatPromptTemplate.from_messages([
                ("system", SYSTEM_PROMPTS[language]),
                ("human", USER_TEMPLATE + "\n\n" + OUTPUT_INSTRUCTIONS),
            ])
            for language in Language
        }

    def render(self, contract: AnalysisContract) -> Tuple[str, str]:
        """
        Render the prompts for a contract

        Args:
            contract: Analysis contract

        Returns:
            Tuple of (system prompt, user prompt)
        """
        language = contract.language
        messages = self.templates[language].format_messages(
            company_name=contract.company_name,
            ticker=contract.ticker,
            period=contract.period,
            financial_facts=json.dumps(
                contract.financial_facts.to_prompt_dict(),
                indent=2,
                ensure_ascii=False),
            text_evidence=self._format_evidence(contract),
            analysis_tasks=self._format_tasks(contract),
            metric_names=METRIC_NAMES[language])

        system_prompt = messages[0].content
        user_prompt = messages[1].content
        logger.debug(f"Rendered prompts for {contract.ticker}: "
                     f"{len(system_prompt)} + {len(user_prompt)} characters")
        return system_prompt, user_prompt

    @staticmethod
    def _format_evidence(contract: AnalysisContract) -> str:
        if not contract.has_evidence:
            return NO_EVIDENCE_NOTICE[contract.language]
        return "\n\n".join(f"## {name}\n{text}"
                           for name, text in contract.text_evidence.items()
                           if text.strip())

    @staticmethod
    def _format_tasks(contract: AnalysisContract) -> str:
        tasks = contract.analysis_tasks or DEFAULT_TASKS
        return "\n".join(f"- {task}" for task in tasks)
