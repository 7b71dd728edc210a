"""HTML reference page for every type, enum, union and alias"""

from . import page
from .helpers import anchor, escape


class HtmlDocs:
    def __init__(self):
        self.sections = []

    def type_enter(self, ctx):
        self.sections.append(f'<h2 id="{anchor(ctx.type.name)}">{escape(ctx.type.name)}</h2>')
        if ctx.type.description:
            self.sections.append(f"<p>{escape(ctx.type.description)}</p>")
        self.sections.append("<table>")

    def field(self, ctx):
        required = "" if ctx.field.optional else " (required)"
        self.sections.append(
            f"<tr><td>{escape(ctx.field.name)}</td>"
            f"<td><code>{escape(ctx.expand_type(ctx.field.type))}</code>{required}</td>"
            f"<td>{escape(ctx.field.description)}</td></tr>"
        )

    def type_exit(self, ctx):
        self.sections.append("</table>")

    def enum_enter(self, ctx):
        self.sections.append(f'<h2 id="{anchor(ctx.enum.name)}">{escape(ctx.enum.name)}</h2>')
        self.sections.append("<ul>")

    def enum_member(self, ctx):
        self.sections.append(f"<li>{escape(ctx.member.name)}</li>")

    def enum_exit(self, ctx):
        self.sections.append("</ul>")

    def after(self, ctx):
        body = "\n".join(self.sections)
        return str(page).format(title=escape(ctx.get("title")), body=body)
