"""Prompt text for translation, summarization and template design."""

BILINGUAL_MODE = "zh-ug"

_LANGUAGE_NAMES = {
    "zh-CN": "Simplified Chinese",
    "zh-TW": "Traditional Chinese",
    "en": "English",
    "ja": "Japanese",
    "ko": "Korean",
    "ug": "Uyghur",
}

_BILINGUAL_FORMAT = """Write the result in both Chinese and Uyghur, formatted exactly as:
【中文】<Chinese text>
【ئۇيغۇرچە】<Uyghur text>"""


def language_name(target_lang: str) -> str:
    return _LANGUAGE_NAMES.get(target_lang, target_lang)


def translate_prompt(text: str, target_lang: str) -> str:
    if target_lang == BILINGUAL_MODE:
        instruction = f"Translate the following text.\n{_BILINGUAL_FORMAT}"
    else:
        instruction = f"Translate the following text into {language_name(target_lang)}."
    return f"{instruction}\nReturn only the translation, no explanations.\n\n{text}"


def summarize_prompt(text: str, target_lang: str) -> str:
    if target_lang == BILINGUAL_MODE:
        instruction = f"Write a concise summary (at most 100 characters per language) of the news below.\n{_BILINGUAL_FORMAT}"
    else:
        instruction = (
            f"Write a concise summary in {language_name(target_lang)} "
            "(at most 100 words) of the news below."
        )
    return f"{instruction}\nReturn only the summary.\n\n{text}"


_BATCH_PROMPT = """You are a news editor. For each numbered news item below, produce:
- "trans_title": the title translated into {language}
- "trans_summary": a concise summary (at most 100 words) in {language} of the item's content (or title when content is empty)
{bilingual}
Respond with a JSON array, one element per item, each element shaped as:
{{"index": <item number>, "trans_title": "...", "trans_summary": "..."}}

"index" is the 1-based number shown in brackets. Respond ONLY with the JSON array, no other text.

News items:

{items}"""


def batch_prompt(items: list[dict], target_lang: str) -> str:
    parts = []
    for i, item in enumerate(items, start=1):
        content = (item.get("content") or "")[:800]
        parts.append(f"[{i}] Title: {item.get('title') or ''}\nContent: {content}")
    if target_lang == BILINGUAL_MODE:
        language = "Chinese and Uyghur"
        bilingual = f"Both fields must use this layout inside the string:\n{_BILINGUAL_FORMAT}\n"
    else:
        language = language_name(target_lang)
        bilingual = ""
    return _BATCH_PROMPT.format(language=language, bilingual=bilingual, items="\n\n".join(parts))


TEMPLATE_DESIGN_PROMPT = """You design HTML email templates for a daily news digest.
The template is rendered with Jinja2 and receives these variables:
- news: list of items, each with title, trans_title, summary, trans_summary, url, source, category, image_url
- date: YYYY-MM-DD
- count: number of items
- generated: YYYY-MM-DD HH:MM:SS

Loop with {{% for item in news %}} ... {{% endfor %}} and prefer
{{{{ item.trans_title or item.title }}}} / {{{{ item.trans_summary or item.summary }}}}.
Use inline-friendly CSS in a <style> block. Return only the complete HTML document.

Requirements:
{description}
{current}"""


def template_design_prompt(description: str, current_template: str = "") -> str:
    current = ""
    if current_template:
        current = f"\nImprove this existing template:\n{current_template}"
    return TEMPLATE_DESIGN_PROMPT.format(description=description, current=current)
