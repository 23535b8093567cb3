"""sdm-kms — knowledge-management assistant core.

Ingests documents, extracts structured intelligence through an LLM, and keeps
a concept wiki, a risk register and a chat session over the document set.
"""

__version__ = "0.2.0"
