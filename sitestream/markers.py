"""Delimiter literals of the streamed project format.

Order-significant and exact; the prompts teach these to the model and the
scanner matches them back out of the stream.
"""

PROJECT_NAME_START = "<<<<<<< PROJECT_NAME_START"
PROJECT_NAME_END = ">>>>>>> PROJECT_NAME_END"

NEW_FILE_START = "<<<<<<< NEW_FILE_START "
NEW_FILE_END = " >>>>>>> NEW_FILE_END"

UPDATE_FILE_START = "<<<<<<< UPDATE_FILE_START "
UPDATE_FILE_END = " >>>>>>> UPDATE_FILE_END"

SEARCH_START = "<<<<<<< SEARCH"
DIVIDER = "======="
REPLACE_END = ">>>>>>> REPLACE"

# Terminal token some transports send as a bare data payload.
DONE_TOKEN = "[DONE]"

FILE_START_MARKERS = (NEW_FILE_START, UPDATE_FILE_START)
