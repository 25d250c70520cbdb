"""Colaboradores externos: REST, canal push e dedupe de eventos."""
