"""
MindCheck v1 Modality Extractors

Each extractor honours one ModalityContract and is raced against its own
deadline by the orchestrator:
    audio   — Audio Feature Extractor (23 features, 6 s)
    visual  — Visual Feature Extractor (13 features, 4 s)
"""
