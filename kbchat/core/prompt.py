"""Answer composer: the instruction payload sent to the oracle per question.

The trailing SOURCES_JSON line requested here is what
``kbchat.core.citations.extract_citations`` parses.  Change both together.
"""

SOURCES_MARKER = "SOURCES_JSON="

_ANSWER_INSTRUCTIONS = """\
You are a helpful company assistant with access to multiple company documents. \
Answer the user's question based ONLY on the company information provided in \
the attached documents. Be professional, helpful, and accurate.

IMPORTANT INSTRUCTIONS:
- Only use information from the provided company documents
- If the information is not available in the documents, say "I don't have that \
information in our company records"
- Don't mention that you're using documents or knowledge base
- Provide specific details from the documents when available
- Be conversational and helpful as a company representative
- You have access to multiple documents, so cross-reference information when needed
- DO NOT create generic headings, bullet points, or formatting structures
- Provide direct, specific answers without unnecessary formatting
- Focus on the actual data and information, not presentation structure

CRITICAL OUTPUT FORMAT:
After your natural language answer, output a SINGLE extra line exactly in this \
format so the app can navigate to referenced PDF pages:
SOURCES_JSON={"sources":[{"fileName":"<basename>","page":<pageNumber>}]}
If you do not have specific page references, output exactly: SOURCES_JSON={"sources":[]}
Only one SOURCES_JSON line. Use minified JSON. No comments."""


def build_answer_prompt(question: str) -> str:
    """Combine the fixed answering policy with the user's question."""
    if not question or not question.strip():
        raise ValueError("Question must be a non-empty string.")
    return f"{_ANSWER_INSTRUCTIONS}\n\nUser's question: {question.strip()}"


def build_answer_request(question: str, vector_store_id: str, model: str) -> dict:
    """Build a Responses API request scoped to one vector store."""
    if not vector_store_id:
        raise ValueError("A vector store id is required to answer questions.")
    return {
        "model": model,
        "input": build_answer_prompt(question),
        "tools": [
            {"type": "file_search", "vector_store_ids": [vector_store_id]},
        ],
    }
