import ply.lex as lex
from ply.lex import TOKEN


class PslLexer:
    t_ignore = ' \t'

    # valid C identifiers (K&R2: A.2.3)
    identifier = r'[a-zA-Z_][0-9a-zA-Z_]*'

    # integer constants (K&R2: A.2.5.1)
    integer_suffix_opt = r'([uU])?'
    decimal_constant = '(0' + integer_suffix_opt + ')|([1-9][0-9]*' + \
        integer_suffix_opt + ')'
    hex_constant = '0[xX][0-9a-fA-F]+' + integer_suffix_opt

    # floating constants (K&R2: A.2.5.3)
    exponent_part = r"""([eE][-+]?[0-9]+)"""
    fractional_constant = r"""([0-9]*\.[0-9]+)|([0-9]+\.)"""
    floating_constant = '((((' + fractional_constant + ')' + exponent_part + \
        '?)|([0-9]+' + exponent_part + '))[Ff]?)'

    literals = [';', '{', '}', '(', ')', '.', ',', ':']

    # Builtin type names. Texture types are separate as they only appear in
    # parameter lists and take a component type argument.
    types = ['FLOAT', 'FLOAT2', 'FLOAT3', 'FLOAT4',
             'DOUBLE', 'DOUBLE2', 'DOUBLE3', 'DOUBLE4',
             'INT', 'INT2', 'INT3', 'INT4',
             'UINT', 'UINT2', 'UINT3', 'UINT4',
             'BOOL', 'BOOL2', 'BOOL3', 'BOOL4',
             'INT64', 'UINT64',
             'FLOAT2X2', 'FLOAT3X3', 'FLOAT4X4',
             'SAMPLER']
    texture_types = ['TEXTURE1D', 'TEXTURE1D_ARRAY', 'TEXTURE2D',
                     'TEXTURE2D_ARRAY', 'TEXTURE3D', 'TEXTURECUBE',
                     'TEXTURECUBE_ARRAY']
    reserved_tokens = ['PIPELINE', 'STRUCT', 'CONST',
                       'IF', 'ELSE', 'RETURN',
                       'FOR', 'CONTINUE', 'BREAK',
                       'DO', 'WHILE',
                       'TRUE', 'FALSE']
    tokens = types + texture_types + reserved_tokens + ['ID',
             'INT_CONST_DEC', 'INT_CONST_HEX',
             'FLOAT_CONST',

             # Operators
             'PLUS', 'MINUS', 'TIMES', 'DIVIDE', 'MOD',
             'OR', 'AND', 'NOT', 'XOR',
             'LOR', 'LAND', 'LNOT',
             'LT', 'LE', 'GT', 'GE', 'EQ', 'NE',

             # Assignment
             'EQUALS', 'TIMESEQUAL', 'DIVEQUAL',
             'PLUSEQUAL', 'MINUSEQUAL',

             # Conditional operator (?)
             'CONDOP']

    # Parameter roles (position, color_target, ...) are not reserved, they
    # are identifiers checked by the parser
    keywords = {t.lower(): t for t in (types + texture_types +
                                       reserved_tokens)}

    def t_newline(self, t):
        r'\n+'
        t.lexer.lineno += t.value.count('\n')

    def t_comment(self, t):
        r'//[^\n]*'
        pass

    def t_error(self, t):
        from psl import Errors
        Errors.ERROR_SYNTAX.Raise(t.value[0])

    @TOKEN(identifier)
    def t_ID(self, t):
        if t.value in self.keywords:
            t.type = self.keywords[t.value]

        return t

    @TOKEN(floating_constant)
    def t_FLOAT_CONST(self, t):
        return t

    @TOKEN(hex_constant)
    def t_INT_CONST_HEX(self, t):
        return t

    @TOKEN(decimal_constant)
    def t_INT_CONST_DEC(self, t):
        return t

    # Operators
    t_PLUS = r'\+'
    t_MINUS = r'-'
    t_TIMES = r'\*'
    t_DIVIDE = r'/'
    t_MOD = r'%'
    t_OR = r'\|'
    t_AND = r'&'
    t_NOT = r'~'
    t_XOR = r'\^'
    t_LOR = r'\|\|'
    t_LAND = r'&&'
    t_LNOT = r'!'
    t_LT = r'<'
    t_GT = r'>'
    t_LE = r'<='
    t_GE = r'>='
    t_EQ = r'=='
    t_NE = r'!='

    # Assignment operators
    t_EQUALS = r'='
    t_TIMESEQUAL = r'\*='
    t_DIVEQUAL = r'/='
    t_PLUSEQUAL = r'\+='
    t_MINUSEQUAL = r'-='

    t_CONDOP = r'\?'

    def Build(self, **kwargs):
        self.lexer = lex.lex(module=self, **kwargs)

    def reset_lineno(self):
        """ Resets the internal line number counter of the lexer."""
        self.lexer.lineno = 1

    def input(self, text):
        self.lexer.input(text)

    def token(self):
        return self.lexer.token()
