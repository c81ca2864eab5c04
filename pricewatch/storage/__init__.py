"""
Result persistence.
"""

from .result_sink import RESULT_FIELDNAMES, CsvResultSink, JsonLinesResultSink, ResultSink

__all__ = ['RESULT_FIELDNAMES', 'CsvResultSink', 'JsonLinesResultSink', 'ResultSink']
