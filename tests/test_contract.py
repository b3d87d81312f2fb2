"""Tests for contract assembly and prompt rendering."""

import json

import pytest

from financial_report_rag.analysis import (DEFAULT_TASKS, Language,
                                           PromptRenderer,
                                           build_analysis_contract)
from financial_report_rag.exceptions import FactsUnavailable


class TestContract:

    def test_builds_immutable_contract(self, aapl_facts):
        evidence = {"MD&A": "Net sales increased.", "Risk Factors": ""}

        contract = build_analysis_contract("aapl", aapl_facts, evidence, "ZH")

        assert contract.ticker == "AAPL"
        assert contract.company_name == "Apple Inc."
        assert contract.period == "Q4 2024"
        assert contract.language is Language.ZH
        assert contract.analysis_tasks == DEFAULT_TASKS
        assert contract.has_evidence
        with pytest.raises(TypeError):
            contract.text_evidence["MD&A"] = "changed"

        evidence["MD&A"] = "mutated later"
        assert contract.text_evidence["MD&A"] == "Net sales increased."

    def test_without_evidence(self, aapl_facts):
        contract = build_analysis_contract("AAPL", aapl_facts)

        assert not contract.has_evidence
        assert contract.evidence_text() == ""

    def test_missing_facts(self):
        with pytest.raises(FactsUnavailable):
            build_analysis_contract("NOPE", None)

    def test_unknown_language(self, aapl_facts):
        with pytest.raises(ValueError):
            build_analysis_contract("AAPL", aapl_facts, language="fr")


class TestPromptRenderer:

    def test_renders_facts_evidence_and_tasks(self, aapl_facts):
        contract = build_analysis_contract(
            "AAPL", aapl_facts, {"MD&A": "Services revenue hit a record."})

        system_prompt, user_prompt = PromptRenderer().render(contract)

        assert "Respond in English" in system_prompt
        assert "Apple Inc. (AAPL)" in user_prompt
        assert "## MD&A\nServices revenue hit a record." in user_prompt
        assert "- Explain the primary drivers of revenue growth" in user_prompt
        assert '"executiveSummary"' in user_prompt
        facts_json = user_prompt.split("## FINANCIAL FACTS\n", 1)[1].split("\n\n## FILING EVIDENCE", 1)[0]
        assert json.loads(facts_json)["revenue"] == 94930000000

    def test_facts_only_notice(self, aapl_facts):
        contract = build_analysis_contract("AAPL", aapl_facts, {}, "zh")

        system_prompt, user_prompt = PromptRenderer().render(contract)

        assert "简体中文" in system_prompt
        assert "暂无文件证据" in user_prompt
        assert "营收同比增长" in user_prompt
