"""
prompts/summarizer.py — Prompts for the three summarization stages.

Stage 1: PARTIAL_*  → extract query-relevant content from one page
Stage 2: WEBPAGE_*  → condense one partial summary into a short paragraph
Stage 3: GENERAL_*  → synthesize all partial summaries into one answer
"""

PARTIAL_SYSTEM_PROMPT = """\
Extract all the information from the provided webpage body text that is relevant to the user query. Output it in paragraphs.
Preserve facts exactly as stated: numbers, dates, names and quotations must not be reworded.
Do not include introductory phrases or explanations; start directly with the relevant information.
If the webpage does not load, simply say 'Fail to load the webpage content.' without additional sentences.
Do not use markdown. Return plaintext only."""

PARTIAL_PROMPT = """\
The user query:
<user query starts>
{query}
<user query ends>

The webpage body text:
<website body text starts>
{text}
<website body text ends>

Your summary:"""


WEBPAGE_SYSTEM_PROMPT = """\
Summarize the content of a webpage from the summary of the webpage. Output at most {sentences} sentences relevant to the user query.
Do not include introductory phrases or explanations; start directly with the relevant information.
If the webpage does not load, simply say 'Fail to load the webpage content.' without additional sentences."""

WEBPAGE_PROMPT = """\
The user query:
<user query starts>
{query}
<user query ends>

The partial summary:
<partial summary starts>
{partial_summary}
<partial summary ends>

Your summary:"""


GENERAL_SYSTEM_PROMPT = """\
Extract information relevant to the user query from the summaries of webpages provided. Output it in at most {paragraphs} paragraphs.
Do not include introductory phrases or explanations; start directly with the relevant information.
If a webpage did not load, simply say 'Fail to load the webpage content.' for that source instead of inventing its content."""

GENERAL_PROMPT = """\
The user query:
<user query starts>
{query}
<user query ends>

The partial summaries:
{summaries}

Your summary:"""

GENERAL_ENTRY = "<Webpage {index}'s partial summary starts>{text}<Webpage {index}'s partial summary ends>"
