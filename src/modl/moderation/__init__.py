"""
Moderation core: offender classification, duration resolution, punishment
application and the AI moderation orchestrator.
"""
