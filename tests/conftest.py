# tests/conftest.py
"""
Shared mocks for the divzero test-suite.

The mocks mirror the attributes of ``cppcheckdata`` objects that divzero
reads.  Besides hand-built token chains, :func:`parse_source` turns a small
C subset into a :class:`MockConfiguration` whose tokens carry the AST links,
variables, scopes and value types cppcheck would write into a dump file.
"""

import re
from typing import Dict, List, Optional


# ═══════════════════════════════════════════════════════════════════
#  Mock cppcheckdata objects
# ═══════════════════════════════════════════════════════════════════

class MockValueType:
    def __init__(self, type="int", pointer=0, sign="signed", **kw):
        self.type = type
        self.pointer = pointer
        self.sign = sign
        for k, v in kw.items():
            setattr(self, k, v)


class MockValue:
    def __init__(self, intvalue=None, valueKind="known", **kw):
        self.intvalue = intvalue
        self.valueKind = valueKind
        self.isKnown = valueKind == "known"
        self.isPossible = valueKind == "possible"
        for k, v in kw.items():
            setattr(self, k, v)


class MockVariable:
    def __init__(self, **kw):
        self.nameToken = None
        self.typeStartToken = None
        self.isArgument = False
        self.isLocal = False
        self.isGlobal = False
        self.isReference = False
        self.isPointer = False
        self.isArray = False
        self.isConst = False
        self.isStatic = False
        self.scope = None
        for k, v in kw.items():
            setattr(self, k, v)


class MockToken:
    def __init__(self, **kw):
        self.str = ""
        self.next = None
        self.previous = None
        self.link = None
        self.astOperand1 = None
        self.astOperand2 = None
        self.astParent = None
        self.varId = 0
        self.variable = None
        self.function = None
        self.valueType = None
        self.values = []
        self.isName = False
        self.isNumber = False
        self.isFloat = False
        self.isOp = False
        self.isCast = False
        self.file = "test.c"
        self.linenr = 1
        self.column = 1
        self.scope = None
        for k, v in kw.items():
            setattr(self, k, v)

    def __repr__(self):
        return f"MockToken({self.str!r} @ {self.linenr}:{self.column})"


class MockScope:
    def __init__(self, **kw):
        self.type = "Global"
        self.className = None
        self.function = None
        self.bodyStart = None
        self.bodyEnd = None
        self.nestedIn = None
        for k, v in kw.items():
            setattr(self, k, v)


class MockFunction:
    def __init__(self, **kw):
        self.name = ""
        self.tokenDef = None
        self.argument = {}
        self.Id = None
        for k, v in kw.items():
            setattr(self, k, v)


class MockSuppression:
    def __init__(self, errorId, fileName="", lineNumber=0, symbolName=""):
        self.errorId = errorId
        self.fileName = fileName
        self.lineNumber = lineNumber
        self.symbolName = symbolName


class MockConfiguration:
    def __init__(self, tokenlist=None, scopes=None, functions=None,
                 variables=None, suppressions=None, name=""):
        self.name = name
        self.tokenlist = tokenlist or []
        self.scopes = scopes or []
        self.functions = functions or []
        self.variables = variables or []
        self.suppressions = suppressions or []


class MockCppcheckData:
    def __init__(self, configurations=None):
        self.configurations = configurations or []


def make_token_chain(specs: List[dict]) -> List[MockToken]:
    """Build a linked token list from attribute dicts."""
    tokens = [MockToken(**spec) for spec in specs]
    for a, b in zip(tokens, tokens[1:]):
        a.next = b
        b.previous = a
    _link_brackets(tokens)
    return tokens


def make_cfg(tokens, scopes=None, functions=None, suppressions=None) -> MockConfiguration:
    return MockConfiguration(
        tokenlist=list(tokens), scopes=scopes, functions=functions,
        suppressions=suppressions,
    )


def make_data(cfgs) -> MockCppcheckData:
    return MockCppcheckData(configurations=list(cfgs))


# ── AST builders ─────────────────────────────────────────────────

def ast(op: MockToken, lhs: Optional[MockToken] = None, rhs: Optional[MockToken] = None) -> MockToken:
    """Attach *lhs*/*rhs* as the AST operands of *op*."""
    op.astOperand1 = lhs
    op.astOperand2 = rhs
    if lhs is not None:
        lhs.astParent = op
    if rhs is not None:
        rhs.astParent = op
    return op


def num(value, **kw) -> MockToken:
    text = str(value)
    return MockToken(str=text, isNumber=True, isFloat="." in text,
                     valueType=MockValueType("double" if "." in text else "int"), **kw)


def local_var(var_id: int, name: str = "x", type: str = "int", **kw):
    """A tracked local: returns a factory producing name tokens that refer to it."""
    var = MockVariable(isLocal=True, **kw)

    def make(**tok_kw) -> MockToken:
        tok = MockToken(str=name, isName=True, varId=var_id, variable=var,
                        valueType=MockValueType(type), **tok_kw)
        if var.nameToken is None:
            var.nameToken = tok
        return tok

    return make


def binop(s: str, lhs, rhs, type: str = "int") -> MockToken:
    return ast(MockToken(str=s, isOp=True, valueType=MockValueType(type)), lhs, rhs)


# ═══════════════════════════════════════════════════════════════════
#  A tiny C front-end producing cppcheck-shaped tokens
# ═══════════════════════════════════════════════════════════════════

_TOKEN_RE = re.compile(r"""
    (?P<ws>\s+|//[^\n]*)
  | (?P<num>0[xX][0-9a-fA-F']+[uUlL]*
       |\d[\d']*\.\d*(?:[eE][+-]?\d+)?[fFlL]?
       |\d[\d']*[uUlL]*)
  | (?P<name>[A-Za-z_]\w*)
  | (?P<op>\.\.\.|<<=|>>=|->|\+\+|--|<<|>>|<=|>=|==|!=|&&|\|\||[-+*/%&|^]=|::
       |[-+*/%<>=!&|^~?:;,.()\[\]{}])
""", re.VERBOSE)

_TYPE_WORDS = frozenset({
    "void", "bool", "char", "short", "int", "long", "unsigned", "signed",
    "float", "double", "const", "static",
})
_ASSIGN = frozenset({"=", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<=", ">>="})
_PREC = {
    "||": 1, "&&": 2, "|": 3, "^": 4, "&": 5,
    "==": 6, "!=": 6, "<": 7, "<=": 7, ">": 7, ">=": 7,
    "<<": 8, ">>": 8, "+": 9, "-": 9, "*": 10, "/": 10, "%": 10,
}
_BOOL_OPS = frozenset({"==", "!=", "<", "<=", ">", ">=", "&&", "||", "!"})


def _link_brackets(tokens):
    stack = []
    pairs = {")": "(", "]": "[", "}": "{"}
    for tok in tokens:
        if tok.str in ("(", "[", "{"):
            stack.append(tok)
        elif tok.str in pairs and stack and stack[-1].str == pairs[tok.str]:
            opener = stack.pop()
            opener.link = tok
            tok.link = opener


def tokenize(source: str, file: str = "test.c") -> List[MockToken]:
    tokens: List[MockToken] = []
    line, line_start = 1, 0
    for m in _TOKEN_RE.finditer(source):
        text = m.group(0)
        if m.lastgroup != "ws":
            tok = MockToken(str=text, file=file, linenr=line, column=m.start() - line_start + 1)
            if m.lastgroup == "num":
                tok.isNumber = True
                tok.isFloat = ("." in text or "e" in text.lower()) and not text.lower().startswith("0x")
            elif m.lastgroup == "name":
                tok.isName = True
            else:
                tok.isOp = text not in "()[]{};,"
            tokens.append(tok)
        newlines = text.count("\n")
        if newlines:
            line += newlines
            line_start = m.start() + text.rindex("\n") + 1
    for a, b in zip(tokens, tokens[1:]):
        a.next = b
        b.previous = a
    _link_brackets(tokens)
    return tokens


def _type_name(words: List[str]) -> str:
    core = [w for w in words if w not in ("const", "static", "signed", "unsigned")]
    if "double" in core or "float" in core:
        return "double"
    if core.count("long") >= 2:
        return "long long"
    for name in ("long", "short", "char", "bool", "void"):
        if name in core:
            return name
    return "int"


def _vt(tok) -> str:
    vt = getattr(tok, "valueType", None)
    return vt.type if vt is not None else "int"


def _arith_type(a, b) -> str:
    types = {_vt(a), _vt(b)}
    for name in ("double", "long long", "long"):
        if name in types:
            return name
    return "int"


class _Parser:
    def __init__(self, tokens: List[MockToken]):
        self.toks = tokens
        self.i = 0
        self.scopes: List[Dict[str, MockVariable]] = [{}]
        self.var_ids = 0
        self.variables: List[MockVariable] = []
        self.functions: List[MockFunction] = []
        self.func_scopes: List[MockScope] = []
        self.kind = "global"

    # ── cursor ───────────────────────────────────────────────────

    @property
    def cur(self) -> Optional[MockToken]:
        return self.toks[self.i] if self.i < len(self.toks) else None

    def peek(self, n: int = 1) -> str:
        j = self.i + n
        return self.toks[j].str if j < len(self.toks) else ""

    def at(self, s: str) -> bool:
        return self.cur is not None and self.cur.str == s

    def advance(self) -> MockToken:
        tok = self.cur
        self.i += 1
        return tok

    def expect(self, s: str) -> MockToken:
        if not self.at(s):
            raise SyntaxError(f"expected {s!r}, got {self.cur!r}")
        return self.advance()

    # ── variables ────────────────────────────────────────────────

    def lookup(self, name: str) -> Optional[MockVariable]:
        for scope in reversed(self.scopes):
            if name in scope:
                return scope[name]
        return None

    def declare(self, name_tok, type_name, pointer=0, reference=False) -> MockVariable:
        self.var_ids += 1
        var = MockVariable(
            nameToken=name_tok,
            isLocal=self.kind == "local",
            isArgument=self.kind == "argument",
            isGlobal=self.kind == "global",
            isReference=reference,
            isPointer=bool(pointer),
        )
        name_tok.varId = self.var_ids
        name_tok.variable = var
        name_tok.valueType = MockValueType(type_name, pointer=pointer)
        self.scopes[-1][name_tok.str] = var
        self.variables.append(var)
        return var

    # ── top level ────────────────────────────────────────────────

    def parse_translation_unit(self):
        while self.cur is not None:
            j = self.i
            while j < len(self.toks) and self.toks[j].str in _TYPE_WORDS | {"*", "&"}:
                j += 1
            if j + 1 < len(self.toks) and self.toks[j + 1].str == "(":
                self.parse_function()
            else:
                self.kind = "global"
                self.parse_declaration()
                self.expect(";")

    def parse_type_words(self) -> List[str]:
        words = []
        while self.cur is not None and self.cur.str in _TYPE_WORDS:
            words.append(self.advance().str)
        return words

    def parse_function(self):
        self.parse_type_words()
        while self.at("*") or self.at("&"):
            self.advance()
        name = self.advance()
        func = MockFunction(name=name.str, tokenDef=name, argument={}, Id=f"f{len(self.functions)}")
        self.functions.append(func)
        self.expect("(")
        self.scopes.append({})
        self.kind = "argument"
        index = 1
        while not self.at(")"):
            words = self.parse_type_words()
            if words == ["void"] and self.at(")"):
                break
            pointer, reference = self.parse_declarator_prefix()
            if not (self.at(")") or self.at(",")):
                param = self.advance()
                func.argument[index] = self.declare(param, _type_name(words), pointer, reference)
            index += 1
            if self.at(","):
                self.advance()
        self.expect(")")
        if self.at(";"):
            self.advance()
            self.scopes.pop()
            return
        body = self.cur
        scope = MockScope(type="Function", className=name.str, function=func,
                          bodyStart=body, bodyEnd=body.link)
        self.func_scopes.append(scope)
        self.kind = "local"
        self.parse_statement()
        self.scopes.pop()
        tok = body
        while tok is not None:
            tok.scope = scope
            if tok is body.link:
                break
            tok = tok.next

    def parse_declarator_prefix(self):
        pointer, reference = 0, False
        while self.at("*") or self.at("&"):
            if self.advance().str == "*":
                pointer += 1
            else:
                reference = True
        return pointer, reference

    def parse_declaration(self):
        type_name = _type_name(self.parse_type_words())
        last = None
        while True:
            pointer, reference = self.parse_declarator_prefix()
            name = self.advance()
            var = self.declare(name, type_name, pointer, reference)
            if self.at("["):
                bracket = self.advance()
                self.i = self.toks.index(bracket.link) + 1
                var.isArray = True
            if self.at("="):
                eq = self.advance()
                ast(eq, name, self.parse_assignment())
                eq.valueType = name.valueType
                last = eq
            else:
                last = name
            if not self.at(","):
                return last
            self.advance()

    # ── statements ───────────────────────────────────────────────

    def parse_statement(self):
        tok = self.cur
        s = tok.str
        if s == "{":
            self.advance()
            self.scopes.append({})
            while self.cur is not tok.link:
                self.parse_statement()
            self.scopes.pop()
            self.advance()
        elif s == ";":
            self.advance()
        elif s in ("if", "while", "switch"):
            kw = self.advance()
            paren = self.expect("(")
            ast(paren, kw, self.parse_comma())
            self.expect(")")
            self.parse_statement()
            if s == "if" and self.at("else"):
                self.advance()
                self.parse_statement()
        elif s == "do":
            self.advance()
            self.parse_statement()
            kw = self.expect("while")
            paren = self.expect("(")
            ast(paren, kw, self.parse_comma())
            self.expect(")")
            self.expect(";")
        elif s == "for":
            kw = self.advance()
            paren = self.expect("(")
            self.scopes.append({})
            if self.at(";"):
                init = None
            elif self.cur.str in _TYPE_WORDS:
                init = self.parse_declaration()
            else:
                init = self.parse_comma()
            semi1 = self.expect(";")
            cond = None if self.at(";") else self.parse_comma()
            semi2 = self.expect(";")
            incr = None if self.at(")") else self.parse_comma()
            self.expect(")")
            ast(semi2, cond, incr)
            ast(semi1, init, semi2)
            ast(paren, kw, semi1)
            self.parse_statement()
            self.scopes.pop()
        elif s == "case":
            kw = self.advance()
            ast(kw, self.parse_ternary())
            self.expect(":")
        elif s == "default":
            self.advance()
            self.expect(":")
        elif s in ("return", "throw"):
            kw = self.advance()
            if not self.at(";"):
                ast(kw, self.parse_comma())
            self.expect(";")
        elif s in ("break", "continue"):
            self.advance()
            self.expect(";")
        elif s == "goto":
            self.advance()
            self.advance()
            self.expect(";")
        elif s == "try":
            self.advance()
            self.parse_statement()
            while self.at("catch"):
                self.advance()
                self.expect("(")
                self.scopes.append({})
                if self.at("..."):
                    self.advance()
                else:
                    words = self.parse_type_words()
                    pointer, reference = self.parse_declarator_prefix()
                    if not self.at(")"):
                        self.declare(self.advance(), _type_name(words), pointer, reference)
                self.expect(")")
                self.parse_statement()
                self.scopes.pop()
        elif tok.isName and self.peek() == ":" and s not in _TYPE_WORDS:
            self.advance()
            self.advance()
        elif s in _TYPE_WORDS:
            self.parse_declaration()
            self.expect(";")
        else:
            self.parse_comma()
            self.expect(";")

    # ── expressions ──────────────────────────────────────────────

    def parse_comma(self):
        lhs = self.parse_assignment()
        while self.at(","):
            comma = self.advance()
            lhs = ast(comma, lhs, self.parse_assignment())
            comma.valueType = lhs.astOperand2.valueType
        return lhs

    def parse_assignment(self):
        lhs = self.parse_ternary()
        if self.cur is not None and self.cur.str in _ASSIGN:
            op = self.advance()
            ast(op, lhs, self.parse_assignment())
            op.valueType = MockValueType(_vt(lhs))
            return op
        return lhs

    def parse_ternary(self):
        cond = self.parse_binary(1)
        if self.at("?"):
            q = self.advance()
            a = self.parse_assignment()
            colon = self.expect(":")
            b = self.parse_ternary()
            ast(colon, a, b)
            ast(q, cond, colon)
            colon.valueType = MockValueType(_arith_type(a, b))
            q.valueType = colon.valueType
            return q
        return cond

    def parse_binary(self, min_prec):
        lhs = self.parse_unary()
        while self.cur is not None and _PREC.get(self.cur.str, 0) >= min_prec:
            op = self.advance()
            rhs = self.parse_binary(_PREC[op.str] + 1)
            ast(op, lhs, rhs)
            op.valueType = MockValueType(
                "bool" if op.str in _BOOL_OPS else _arith_type(lhs, rhs)
            )
            lhs = op
        return lhs

    def parse_unary(self):
        tok = self.cur
        s = tok.str
        if s in ("-", "+", "!", "~", "&", "*", "++", "--"):
            self.advance()
            operand = self.parse_unary()
            ast(tok, operand)
            if s == "!":
                tok.valueType = MockValueType("bool")
            elif s == "&":
                tok.valueType = MockValueType(_vt(operand), pointer=1)
            else:
                tok.valueType = MockValueType(_vt(operand))
            return tok
        if s == "sizeof":
            self.advance()
            paren = self.expect("(")
            if self.cur.str in _TYPE_WORDS:
                self.i = self.toks.index(paren.link)
                inner = None
            else:
                inner = self.parse_comma()
            self.expect(")")
            ast(paren, tok, inner)
            paren.valueType = MockValueType("long", sign="unsigned")
            return paren
        if s == "(" and self.peek() in _TYPE_WORDS:
            self.advance()
            words = self.parse_type_words()
            pointer, _ = self.parse_declarator_prefix()
            self.expect(")")
            operand = self.parse_unary()
            tok.isCast = True
            ast(tok, operand)
            tok.valueType = MockValueType(_type_name(words), pointer=pointer)
            return tok
        return self.parse_postfix()

    def parse_postfix(self):
        node = self.parse_primary()
        while self.cur is not None:
            s = self.cur.str
            if s == "(":
                paren = self.advance()
                args = None
                if not self.at(")"):
                    args = self.parse_assignment()
                    while self.at(","):
                        comma = self.advance()
                        args = ast(comma, args, self.parse_assignment())
                self.expect(")")
                node = ast(paren, node, args)
                paren.valueType = MockValueType("int")
            elif s == "[":
                bracket = self.advance()
                index = self.parse_comma()
                self.expect("]")
                node = ast(bracket, node, index)
                bracket.valueType = MockValueType(_vt(node.astOperand1))
            elif s in (".", "->"):
                op = self.advance()
                member = self.advance()
                node = ast(op, node, member)
                op.valueType = MockValueType("int")
            elif s in ("++", "--"):
                op = self.advance()
                node = ast(op, node)
                op.valueType = MockValueType(_vt(node.astOperand1))
            else:
                break
        return node

    def parse_primary(self):
        tok = self.advance()
        if tok.str == "(":
            inner = self.parse_comma()
            self.expect(")")
            return inner
        if tok.isNumber:
            tok.valueType = MockValueType("double" if tok.isFloat else "int")
        elif tok.str in ("true", "false"):
            tok.valueType = MockValueType("bool")
        elif tok.isName:
            var = self.lookup(tok.str)
            if var is not None:
                tok.varId = var.nameToken.varId
                tok.variable = var
                tok.valueType = var.nameToken.valueType
        return tok


def parse_source(source: str, file: str = "test.c", suppressions=None) -> MockConfiguration:
    """Parse a small C program into a mock cppcheck configuration."""
    tokens = tokenize(source, file)
    parser = _Parser(tokens)
    parser.parse_translation_unit()

    by_name = {f.name: f for f in parser.functions}
    for tok in tokens:
        if tok.str == "(" and not tok.isCast and tok.astOperand1 is not None:
            callee = tok.astOperand1
            if callee.str in by_name:
                callee.function = by_name[callee.str]

    global_scope = MockScope(type="Global")
    for tok in tokens:
        if tok.scope is None:
            tok.scope = global_scope
    for scope in parser.func_scopes:
        scope.nestedIn = global_scope

    return MockConfiguration(
        tokenlist=tokens,
        scopes=[global_scope] + parser.func_scopes,
        functions=parser.functions,
        variables=parser.variables,
        suppressions=suppressions,
    )


def find_function(cfg: MockConfiguration, name: str) -> MockFunction:
    return next(f for f in cfg.functions if f.name == name)


def find_tokens(cfg: MockConfiguration, s: str) -> List[MockToken]:
    return [t for t in cfg.tokenlist if t.str == s]


def body_tokens(scope) -> List[MockToken]:
    """Tokens strictly between a scope's braces."""
    tokens = []
    tok = scope.bodyStart.next
    while tok is not scope.bodyEnd:
        tokens.append(tok)
        tok = tok.next
    return tokens
