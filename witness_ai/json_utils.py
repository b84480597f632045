"""
Parse JSON out of LLM responses: markdown fences, trailing commas, raw newlines inside
strings and output cut off mid-object.
"""
import json
import re

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.S)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


class JsonParser:

    @staticmethod
    def _escape_control_chars(s: str) -> str:
        """Escape raw newlines/tabs that appear inside string values."""
        out = []
        in_string = False
        escaped = False
        for c in s:
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
                elif c in "\n\r\t":
                    out.append({"\n": "\\n", "\r": "\\r", "\t": "\\t"}[c])
                    continue
            elif c == '"':
                in_string = True
            out.append(c)
        return "".join(out)

    @staticmethod
    def _close_truncated(s: str) -> str:
        """Append the brackets a truncated response never closed, innermost first."""
        stack = []
        in_string = False
        escaped = False
        for c in s:
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
            elif c == '"':
                in_string = True
            elif c in "{[":
                stack.append("}" if c == "{" else "]")
            elif c in "}]" and stack:
                stack.pop()
        s = s.rstrip().rstrip(",")
        if in_string:
            s += '"'
        return s + "".join(reversed(stack))

    @classmethod
    def _candidates(cls, s: str):
        yield s
        yield _TRAILING_COMMA.sub(r"\1", s)
        escaped = cls._escape_control_chars(s)
        yield escaped
        yield _TRAILING_COMMA.sub(r"\1", escaped)
        yield _TRAILING_COMMA.sub(r"\1", cls._close_truncated(escaped))

    @classmethod
    def extract_json_from_llm(cls, response: str):
        """Parsed JSON value. Raises ValueError when the response holds none."""
        if not response or not response.strip():
            raise ValueError("LLM returned empty response.")
        text = response.strip()
        fenced = _FENCE.search(text)
        if fenced:
            text = fenced.group(1).strip()
        starts = [p for p in (text.find("{"), text.find("[")) if p >= 0]
        if starts:
            text = text[min(starts):]
        for candidate in cls._candidates(text):
            try:
                return json.loads(candidate)
            except json.JSONDecodeError:
                continue
        raise ValueError("LLM did not return valid JSON.")
