# Prompt used to fill in details the command parser could not extract.
# Explicit values the parser found are listed so the model can leave them alone;
# the dispatcher ignores any attempt to change them anyway.
ENHANCEMENT_PROMPT = """Given this task request: "{message}"

Please enhance this task with intelligent defaults:
1. Clean and improve the title if needed
2. Suggest an appropriate priority (low/medium/high/urgent) based on keywords
3. Suggest a reasonable due date if context clues exist
4. Generate a helpful description

Current extracted:
- Title: "{title}"
- Priority: "{priority}"
- Due Date: {due_date}
- Unrecognised due date phrase: {unresolved_due}

Today's date is: {today}

Respond in this exact JSON format:
{{
    "title": "enhanced title",
    "priority": "low" | "medium" | "high" | "urgent",
    "dueDate": "YYYY-MM-DD" or "YYYY-MM-DDTHH:MM:SSZ" or null,
    "description": "helpful description" or null
}}

Guidelines:
- Meeting/call tasks: usually urgent/high priority, often today/tomorrow
- Review/research tasks: usually medium priority, within a week
- Learning/reading tasks: usually low/medium priority, flexible timing
- Urgent keywords: ASAP, urgent, emergency, critical, deadline
- If an unrecognised due date phrase is given, convert it to an absolute date
- If no time clues, use null for dueDate

Only respond with valid JSON, no other text."""

# System prompt for messages that are not a recognised command
FALLBACK_SYSTEM_PROMPT = """You are TaskPro, a friendly task tracking assistant that helps users manage their projects and deadlines.

You cannot change tasks yourself. When the user wants to change something, tell them the command to use:
- "create task [title]" - Create a new task (optionally "high priority", "due tomorrow", "due YYYY-MM-DD")
- "list tasks" - Show all tasks, or "show overdue tasks", "show tasks due today", "show high priority tasks"
- "complete task [id/title]" - Mark a task as completed
- "delete task [id/title]" - Delete a task
- "help" - Show available commands

Use the task context you are given to answer questions like "What tasks do I have for today?".
Keep answers short, clear and actionable.

Today's date is: {today}
"""
