"""Prompt templates for the Claude oracles."""

TOPIC_FEATURES_PROMPT = """Describe the topic of this web page. It is one of several open browser tabs that will be grouped by topic.

Title: {title}
URL: {url}
Description: {description}

Content (truncated):
{content}

Respond in this exact JSON format:
{{
  "primary_topic": "2-5 word topic",
  "subtopics": ["subtopic1", "subtopic2"],
  "entities": ["named people, products or organizations"],
  "doc_type": "article|docs|category|landing|video|product|search|other",
  "is_generic_landing": false,
  "merge_hints": ["short phrases another tab on the same topic would share"],
  "summary_bullets": ["one-line summary"]
}}"""

CLUSTER_LABEL_PROMPT = """Name this group of browser tabs. They were grouped together by topic similarity.

Centroid keywords: {centroid_terms}
Frequent keywords: {keywords}
Dominant domain: {domain}
Language: {language}
Taxonomy tags: {taxonomy}

Example titles:
{titles}

Give a short topic name (2-4 words, no quotes, no "Group" prefix) and a one-sentence description.

Respond in this exact JSON format:
{{
  "name": "topic name",
  "description": "one sentence"
}}"""

SAME_TOPIC_PROMPT = """Do these two browser tabs belong in the same topic group?

Tab A:
{summary_a}

Tab B:
{summary_b}

Respond in this exact JSON format:
{{
  "same_topic": true,
  "confidence": 0.0,
  "reason": "short reason"
}}"""
