"""
RagChat - Prompt Templates
===========================
Centralised prompt text for the RAG orchestrator.  All prompts live here
so they can be versioned and reviewed independently of application
logic.

Exports
-------
SYSTEM_INSTRUCTION, RAG_PROMPT_TEMPLATE, IDK_RESPONSE,
HISTORY_TURN_TEMPLATE, CONTEXT_SEPARATOR.
"""

# ══════════════════════════════════════════════════════════════════════
#  FALLBACK ANSWER
# ══════════════════════════════════════════════════════════════════════
# Substituted when the model returns an empty completion.

IDK_RESPONSE: str = "I don't know."


# ══════════════════════════════════════════════════════════════════════
#  SYSTEM INSTRUCTION
# ══════════════════════════════════════════════════════════════════════

SYSTEM_INSTRUCTION: str = (
    "You are a helpful assistant. Use ONLY the knowledge below to answer the user's question. "
    "If the answer is not in the knowledge, say \"I don't know\"."
)


# ══════════════════════════════════════════════════════════════════════
#  PROMPT ASSEMBLY
# ══════════════════════════════════════════════════════════════════════

CONTEXT_SEPARATOR: str = "\n\n"

HISTORY_TURN_TEMPLATE: str = "User: {message}\nAssistant: {response}"

RAG_PROMPT_TEMPLATE: str = """{system}

Knowledge:
{context}

Conversation History:
{history}

User Question: {question}

Answer:"""
