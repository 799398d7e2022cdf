"""Linear issue triage copilot.

This package receives Linear issue webhooks and drives them through:
- Webhook authentication (IP allowlist, HMAC signature, timestamp window)
- Event classification (issue created / issue labels updated / ignored)
- Label routing to a Bug, Feature or Improvement specialist
- Deterministic priority scoring from fixed decision matrices
- Dispatch to a LangChain agent team that comments on and prioritises
  the issue in Linear
"""
