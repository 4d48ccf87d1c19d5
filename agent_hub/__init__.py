"""
Agent Hub
=========
Orchestrates external LinguaLearn agent programs (speech translation,
vocabulary extraction, summarization, diagram generation, whiteboard capture)
into multi-step workflows, routing each agent's output files into the next
agent's arguments.
"""

__version__ = "0.1.0"
