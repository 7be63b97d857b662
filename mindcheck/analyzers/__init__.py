"""
MindCheck v1 Text Analyzers

Two interchangeable strategies producing identically shaped TextAnalysis:
    text     — RemoteTextAnalyzer (external text-understanding service)
    lexicon  — LexiconTextAnalyzer (local word lists and heuristics)
"""
