"""
Presentation constants shared by the projection, toggle and step engine.
"""

# Step button, keyed by the step's completed flag
STEP_BUTTON_LABELS = {True: "Completed", False: "Complete step"}
STEP_BUTTON_VARIANTS = {True: "neutral", False: "brand-outline"}
STEP_BUTTON_ICONS = {True: "check", False: "success-glyph"}

# Lesson expand/collapse control, keyed by show_steps
LESSON_STEP_BUTTON_LABELS = {True: "Hide Steps", False: "Show Steps"}
LESSON_ICONS = {True: "chevron-down", False: "chevron-right"}

DEFAULT_BADGE_ICON = "award"

# Toast copy lives in notifications/messages.yaml; this is the last resort
# when a failure carries no usable message.
FALLBACK_ERROR_MESSAGE = "Could not update step"
