"""Prompt templates exposed by the note MCP Server."""


def note_search_prompt(query: str) -> str:
    return (
        f"Search note.com for articles about \"{query}\" and summarize them. "
        f"If any article looks especially useful, describe it in detail."
    )


def competitor_analysis_prompt(username: str) -> str:
    return (
        f"Analyze the articles of the note.com user \"{username}\" from these angles:\n\n"
        "- Main content trends\n"
        "- What their popular articles have in common\n"
        "- Posting frequency\n"
        "- Traits of high-engagement articles\n"
        "- Possible points of differentiation"
    )


def content_idea_prompt(topic: str) -> str:
    return (
        f"Come up with five note.com article ideas about \"{topic}\". For each idea include:\n\n"
        "- A catchy title\n"
        "- A summary of about 100 characters\n"
        "- 3-5 key points to cover\n"
        "- A unique angle that sets it apart"
    )


def article_analysis_prompt(note_id: str) -> str:
    return (
        f"Analyze the note.com article with ID \"{note_id}\" from these angles:\n\n"
        "- Main theme and key points\n"
        "- Structure and writing style\n"
        "- What earns it engagement\n"
        "- What could be improved\n"
        "- Writing techniques worth borrowing"
    )
