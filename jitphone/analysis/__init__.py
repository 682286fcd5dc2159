"""Static analysis reports for target-language code."""

from jitphone.analysis.code_analysis import CodeAnalysis, analyze_code

__all__ = ["CodeAnalysis", "analyze_code"]
