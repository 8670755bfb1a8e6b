# Data page requested from every source object (top-left corner of the hypercube)
HYPERCUBE_PATH = "/qHyperCubeDef"
HYPERCUBE_PAGE_TOP = 0
HYPERCUBE_PAGE_LEFT = 0

CHART_ID_PREFIX = "chart_"

SUPPORTED_CHART_TYPES = {
    "barchart",
    "linechart",
    "piechart",
    "combochart",
    "scatterplot",
    "table",
    "kpi",
}

CHART_TYPE_ALIASES = {
    "bar": "barchart",
    "line": "linechart",
    "pie": "piechart",
    "combo": "combochart",
    "scatter": "scatterplot",
}

# Response body fields understood by the classifier, in lookup order
RESPONSE_TEXT_FIELDS = ("text", "content")
RESPONSE_VISUALIZATION_FIELDS = ("visualization", "chart")
RESPONSE_ERROR_FIELD = "error"

# User facing texts
NO_DATA_MESSAGE = "No data is available from the selected objects. Select a chart or table and try again."
GENERIC_ERROR_MESSAGE = "Failed to get response from AI. Please try again."
VISUALIZATION_ERROR_MESSAGE = "The chart for this answer could not be created."
COPIED_NOTICE = "Copied to clipboard!"
NOTHING_TO_COPY_NOTICE = "There is no answer to copy yet."
VOICE_QUERY_BUSY_NOTICE = "Still answering the previous question. Please ask again once it is done."
SPEECH_UNSUPPORTED_MESSAGE = "Text-to-speech is not supported in your browser"
RECOGNITION_UNSUPPORTED_MESSAGE = "Speech recognition is not supported in your browser"
BUSY_MESSAGE = "Speech is busy. Stop the current speech or voice input first."
