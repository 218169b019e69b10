"""Test doubles and fixture builders for the RAG engine."""
