"""
Core cross-cutting pieces shared by the analysis layers and the orchestrator.
"""
