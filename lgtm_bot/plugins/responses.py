"""Formatting of bot replies posted as comments."""

ABOUT_THIS_BOT = (
    "Instructions for interacting with me using PR comments are available "
    "via the `/plugins/help` endpoint of this bot. If you have questions or "
    "suggestions related to my behavior, please contact the repository maintainers."
)


def format_response(to: str, message: str, reason: str) -> str:
    """
    Address a message to a user and attach the reason in a collapsed block.

    Args:
        to: Login the reply is addressed to
        message: The reply itself
        reason: Context shown inside the <details> block
    """
    return (
        f"@{to}: {message}\n"
        "\n"
        "<details>\n"
        "\n"
        f"{reason}\n"
        "\n"
        f"{ABOUT_THIS_BOT}\n"
        "</details>"
    )


def format_response_raw(body: str, body_url: str, login: str, reply: str) -> str:
    """
    Reply to a comment, quoting it and linking back to it.

    Args:
        body: Text of the comment being answered
        body_url: Link to that comment
        login: Author of that comment
        reply: The bot's reply
    """
    quoted = "\n".join(">" + line for line in body.split("\n"))
    reason = f"In response to [this]({body_url}):\n\n{quoted}\n"
    return format_response(login, reply, reason)
