import html


def escape(text):
    return html.escape(text or "")


def anchor(name):
    return name.lower()
