"""
modl - Punishment Escalation & Automated Moderation Engine

modl is the decision engine behind a game community's moderation panel. It
decides how hard a punishment lands based on a player's history, and reads
reported chat through a language model to suggest (or apply) punishments.

Core Components:

- **Status Classification**: Derives a player's Gameplay and Social offender
  tiers from the points of their active punishments
- **Duration Resolution**: Turns a punishment type, severity and offense level
  into a concrete duration, kind and point value
- **Punishment Application**: Appends punishments and modifications to a
  player's history atomically, with an audit trail
- **AI Chat Analysis**: Assembles strictness-specific prompts, queries an
  OpenAI-compatible endpoint and parses its verdict defensively
- **Moderation Orchestration**: Queues chat-report tickets for analysis and
  records the outcome on the ticket for staff review

Usage:
    from modl.main import main
    main()  # Starts the engine and its analysis workers
"""
