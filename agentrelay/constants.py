DEFAULT_MODEL = "gpt-4o"

# Assistant replies substituted when the provider cannot answer.
REPLY_RUN_FAILED = "Sorry, I could not process the message."
REPLY_NOT_CONFIGURED = "Agent not configured correctly."

# Widget
WIDGET_THEMES = ("light", "dark", "auto")
WIDGET_POSITIONS = ("bottom-right", "bottom-left")
WIDGET_DEFAULT_THEME = "light"
WIDGET_DEFAULT_POSITION = "bottom-right"
WIDGET_DEFAULT_COLOR = "#007bff"
WIDGET_DEFAULT_WELCOME = "Hello! How can I help you today?"
WIDGET_ERROR_MESSAGE = "Sorry, an error occurred. Please try again."
WIDGET_IFRAME_WIDTH = 350
WIDGET_IFRAME_HEIGHT = 500
