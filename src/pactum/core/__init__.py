"""
Core of pactum: model language, logic language, template loading and errors.

Submodules are imported directly (``pactum.core.template``,
``pactum.core.model_manager``, ...).
"""
