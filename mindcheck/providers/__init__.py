"""
MindCheck v1 External Providers

Interfaces and HTTP clients for the two external collaborators:
    face  — Face-attribute recognition (consumed by the visual extractor)
    text  — Text understanding (consumed by the remote text analyzer)
"""
