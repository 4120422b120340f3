VALIDATION_PROMPT = """Analyze this image and determine:
1. Is this an anime-related image? (yes/no)
2. Is the image clear enough to identify details? (yes/no)
3. Brief reason for your assessment

Respond in valid JSON format: {"isAnime": boolean, "isClear": boolean, "reason": string}"""


ANALYSIS_SYSTEM_PROMPT = """You are a Japanese vintage toy expert specializing in anime merchandise. Your task is to analyze images of anime characters and collectibles.

For any provided image, identify:
1. The anime/manga series it belongs to
2. The specific character depicted
3. The type of merchandise (e.g., strap, acrylic stand, figure, card, etc.)
4. The approximate year/era if discernible

Provide the most effective Japanese search keywords used by collectors on Mercari and other Japanese auction sites. These keywords should be specific, authentic, and commonly used.

If the image is blurry, heavily obscured, or does not contain anime-related content, respond with an error message indicating the issue.

You must respond in valid JSON format only."""


ANALYSIS_USER_PROMPT = """Analyze this anime character/merchandise image and provide:
1. series: The name of the anime/manga series
2. character: The specific character's name
3. jpKeywords: Comma-separated Japanese search keywords used on Mercari (be specific with product type and year if visible)
4. searchKeyword: One short Japanese search phrase (character name plus series or product type) that finds this item on Mercari or Suruga-ya
5. reasoning: Brief explanation of your analysis

Return ONLY valid JSON in this exact format:
{
  "series": "string",
  "character": "string",
  "jpKeywords": "string",
  "searchKeyword": "string",
  "reasoning": "string"
}"""


VALIDATION_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "image_validation",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "isAnime": {"type": "boolean"},
                "isClear": {"type": "boolean"},
                "reason": {"type": "string"},
            },
            "required": ["isAnime", "isClear", "reason"],
            "additionalProperties": False,
        },
    },
}


ANALYSIS_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "merchandise_analysis",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "series": {"type": "string"},
                "character": {"type": "string"},
                "jpKeywords": {"type": "string"},
                "searchKeyword": {"type": "string"},
                "reasoning": {"type": "string"},
            },
            "required": ["series", "character", "jpKeywords", "searchKeyword", "reasoning"],
            "additionalProperties": False,
        },
    },
}
