"""
Report Parser

Turns aggregated model text into an AnalysisReport. Models often wrap the
JSON in markdown fences or add prose around it, so parsing falls back
through progressively more forgiving clean-ups.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..exceptions import MalformedReport
from .report import AnalysisReport

logger = logging.getLogger(__name__)


class ReportParser:
    """Parses model output into the report schema"""

    def parse(self, response_content: str) -> AnalysisReport:
        """
        Parse model output

        Args:
            response_content: Full text produced by the model

        Returns:
            The parsed report

        Raises:
            MalformedReport: The text holds no JSON object matching the schema
        """
        data = self._parse_json_response(response_content)
        if data is None:
            raise MalformedReport(
                f"Model output is not valid JSON: "
                f"{(response_content or '')[:200]!r}")

        try:
            return AnalysisReport.model_validate(data)
        except ValidationError as e:
            raise MalformedReport(
                f"Model output does not match the report schema: {e}") from e

    def _parse_json_response(self,
                             response_content: str) -> Optional[Dict[str, Any]]:
        """Parse and clean JSON response from LLM"""
        if not response_content or not response_content.strip():
            logger.warning("Empty response from LLM")
            return None

        candidates = [
            response_content,
            self._clean_json_response(response_content),
            self._fix_json_issues(response_content),
        ]
        for candidate in candidates:
            if not candidate:
                continue
            try:
                data = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                return data

        logger.error(f"Failed to parse JSON response. "
                     f"Response: {response_content[:200]}...")
        return None

    def _clean_json_response(self, content: str) -> Optional[str]:
        """Clean JSON response by removing markdown formatting"""
        # Remove markdown code blocks
        content = re.sub(r'```json\s*', '', content, flags=re.IGNORECASE)
        content = re.sub(r'```\s*$', '', content, flags=re.MULTILINE)
        content = re.sub(r'^```.*$', '', content, flags=re.MULTILINE)

        return self._extract_object(content)

    def _fix_json_issues(self, content: str) -> Optional[str]:
        """Try to fix common JSON formatting issues"""
        content = self._clean_json_response(content) or content

        # Remove any text before first { and after last }
        start_idx = content.find('{')
        end_idx = content.rfind('}')
        if start_idx == -1 or end_idx == -1:
            return None
        content = content[start_idx:end_idx + 1]

        # Remove trailing commas
        content = re.sub(r',\s*}', '}', content)
        content = re.sub(r',\s*]', ']', content)

        return content

    @staticmethod
    def _extract_object(content: str) -> Optional[str]:
        """Return the first balanced {...} block, ignoring braces in strings"""
        start_idx = content.find('{')
        if start_idx == -1:
            return None

        depth = 0
        in_string = False
        escaped = False
        for i in range(start_idx, len(content)):
            char = content[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue

            if char == '"':
                in_string = True
            elif char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    return content[start_idx:i + 1]

        return None
