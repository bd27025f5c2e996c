"""
Text generation service using Claude
"""
import anthropic
from utils.logging import log

# Global Claude client instance
claude_client = None


def init_claude_client(api_key: str, http_client=None):
    """Initialize Claude API client."""
    global claude_client
    if http_client:
        claude_client = anthropic.Anthropic(api_key=api_key, http_client=http_client)
    else:
        claude_client = anthropic.Anthropic(api_key=api_key)
    log("✅ Claude client initialized")
    return claude_client


def build_document_summary_prompt(content: str, file_name: str) -> str:
    """Prompt asking for a short, searchable summary of one source file."""
    return f"""You are an expert code analyst. Provide a concise, technical summary of this file that will be useful for a RAG (Retrieval Augmented Generation) system.

File: {file_name or 'Unknown file'}

Focus on:
1. **Purpose**: What this file does or contains
2. **Key functionality**: Main functions, classes, or concepts
3. **Dependencies**: Important imports or external connections
4. **Technical details**: APIs, patterns, or architectures used
5. **Context**: How this might relate to other parts of a project

Keep the summary under 200 words and make it searchable for relevant queries.

File content:
{content}"""


def build_commit_summary_prompt(diff_text: str) -> str:
    """Prompt asking for a short summary of one commit."""
    return f"""Analyze this Git commit and provide a concise, helpful summary. Focus on:
1. What type of change this is (feature, bugfix, refactor, etc.)
2. The main purpose and impact of the changes
3. Any important technical details

Keep the summary under 150 words and use a professional, informative tone.

Commit data:
{diff_text}"""


def build_answer_prompt(question: str, context: str) -> str:
    """Prompt that restricts the answer to the retrieved context."""
    return f"""You are an AI code assistant answering questions about a codebase.
Use only the provided context from relevant files to answer the user's question.

Context from relevant files:
{context}

User question: {question}

Instructions:
1. Answer only from the provided context
2. Be specific and mention file names when relevant
3. If the context doesn't contain enough information, say so
4. Keep the answer concise but complete

Answer:"""


def complete(client, model: str, prompt: str, max_tokens: int) -> str:
    """Blocking single-turn Claude call; run it in an executor."""
    message = client.messages.create(
        model=model,
        max_tokens=max_tokens,
        messages=[{"role": "user", "content": prompt}],
    )
    usage = getattr(message, "usage", None)
    if usage is not None:
        log(f"   📖 {usage.input_tokens} input tokens, {usage.output_tokens} output tokens")
    return message.content[0].text
