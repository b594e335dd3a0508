"""Static metadata describing the picture assessment service."""

APP_NAME = "PictoAssess"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "PictoAssess administers multi-level picture assessments: each screen shows up to four "
    "images and asks the subject to pick the one that matches a spoken prompt. Answers are "
    "recorded once per question and summarized into timestamped score reports."
)
