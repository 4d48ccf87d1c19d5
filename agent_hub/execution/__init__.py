"""Workflow execution.

This package launches agent processes, routes files between steps and runs
workflows step by step with an operator-facing failure gate.
"""
