"""
Test suite for the Notion comment responder.

Test Organization:
- test_models.py: Payload parsing into comments, rich text and block variants
- test_notion_client.py: Notion client adapter (pagination, errors, replies, titles)
- test_index.py: Index page link extraction
- test_aggregator.py: Page-level and inline comment aggregation
- test_threads.py: Discussion grouping and latest-comment classification
- test_prompts.py: Prompt templates
- test_ai_client.py: Responder routing, fallback and retries
- test_dispatcher.py: Reply generation and posting
- test_storage.py: Processed state persistence
- test_config.py: Configuration merge and secret resolution
- test_poller.py: Full poll cycles against an in-memory workspace
- test_scheduler.py: Recurring trigger and overlap guard
- test_plugin.py: Host entry point
- utils/: Logging configuration and error utilities

Run all tests:
    python -m pytest tests/ -v
"""
