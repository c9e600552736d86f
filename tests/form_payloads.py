import json


def make_item(text, type_code, options=None, required=0, item_id=1000):
    """A question entry shaped like Google's: [id, text, help, type, [[entry, options, required]]]."""
    choices = [[o, None, None, None, 0] for o in options] if options is not None else None
    return [item_id, text, None, type_code, [[item_id + 1, choices, required]]]


def make_form(items, title="Customer Survey", description="Tell us about your visit"):
    form = [description, items, None, None, None, None, None, None, title]
    return [None, form, "/forms", title]


def make_page(payload):
    return (
        "<!DOCTYPE html><html><head><title>Form</title></head><body>"
        '<script type="text/javascript" nonce="abc">var FB_PUBLIC_LOAD_DATA_ = '
        f"{json.dumps(payload)};</script>"
        "</body></html>"
    )
