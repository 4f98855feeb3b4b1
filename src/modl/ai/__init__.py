"""
AI chat analysis for modl.

- **prompt_assembler.py**: Default prompts per strictness level, stored
  overrides, and injection of the AI-enabled punishment types.
- **chat_analysis_client.py**: Formats chat transcripts and sends them to an
  OpenAI-compatible chat completions endpoint with timeout and retry.
- **response_parsing.py**: Schema-validated, never-raising parsing of the
  model's JSON verdict.
"""
