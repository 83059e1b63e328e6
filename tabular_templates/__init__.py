"""
Template packages for tabular models.

- templates: package cache, discovery/loading, rule engine, configuration
- engine: apply / diff / preview / commit workflows
- model: model session collaborator (in-memory catalog)
"""

__version__ = "0.1.0"
