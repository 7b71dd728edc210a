"""TypeScript declarations and a plain-text outline"""

TS_PRIMITIVES = {
    "string": "string",
    "boolean": "boolean",
    "bool": "boolean",
    "int": "number",
    "integer": "number",
    "float": "number",
    "number": "number",
    "any": "unknown",
}


def ts_type(ctx, any_type):
    rendered = ctx.expand_type(any_type)
    for name, ts_name in TS_PRIMITIVES.items():
        if rendered == name:
            return ts_name
    if rendered.startswith("{"):
        key, value = rendered[1:-1].split(": ", 1)
        return f"Record<{TS_PRIMITIVES.get(key, key)}, {TS_PRIMITIVES.get(value, value)}>"
    return rendered


class TypeScriptVisitor:
    def before(self, ctx):
        ctx.writeln(f"// Generated from namespace {ctx.namespace.name}. Do not edit.")

    def type_enter(self, ctx):
        ctx.writeln()
        ctx.writeln(f"export interface {ctx.type.name} {{")

    def field(self, ctx):
        marker = "?" if ctx.field.optional else ""
        ctx.writeln(f"{ctx.get('indent', '  ')}{ctx.field.name}{marker}: {ts_type(ctx, ctx.field.type)};")

    def type_exit(self, ctx):
        ctx.writeln("}")

    def enum_enter(self, ctx):
        ctx.writeln()
        ctx.writeln(f"export enum {ctx.enum.name} {{")

    def enum_member(self, ctx):
        value = ctx.member.value
        literal = f'"{value}"' if isinstance(value, str) else value
        ctx.writeln(f"{ctx.get('indent', '  ')}{ctx.member.name} = {literal},")

    def enum_exit(self, ctx):
        ctx.writeln("}")

    def union_enter(self, ctx):
        members = " | ".join(ts_type(ctx, member) for member in ctx.union.members)
        ctx.writeln()
        ctx.writeln(f"export type {ctx.union.name} = {members};")

    def alias_enter(self, ctx):
        ctx.writeln()
        ctx.writeln(f"export type {ctx.alias.name} = {ts_type(ctx, ctx.alias.type)};")


class OutlineVisitor:
    def namespace(self, ctx):
        return f"# {ctx.namespace.name}\n\n{ctx.namespace.description}\n"

    def type_enter(self, ctx):
        return f"\n## {ctx.type.name}\n\n"

    def field(self, ctx):
        return f"- `{ctx.field.name}`: `{ctx.expand_type(ctx.field.type)}`\n"
