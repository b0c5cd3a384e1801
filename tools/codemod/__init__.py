# CUI // SP-CTI
"""Frontend codemod engine: discovery, extraction, rule-driven rewrites, reporting."""
