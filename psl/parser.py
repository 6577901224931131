import ply.yacc
from psl import ast, types, lexer, op, Errors
from enum import Enum


class ParseEntryPoint(Enum):
    Module = 'module'
    Expression = 'expression'
    Statement = 'statement'


class PslParser:
    def __init__(self, parseEntryPoint=ParseEntryPoint.Module):
        self.lexer = lexer.PslLexer()
        self.lexer.Build()
        self.tokens = self.lexer.tokens
        self.__sourceMapping = None

        self.parser = ply.yacc.yacc(module=self,
                                    start=parseEntryPoint.value,
                                    debug=False,
                                    write_tables=False,
                                    errorlog=ply.yacc.NullLogger())

    def __GetLocation(self, p, which):
        begin = p.lexpos(which)
        return ast.Location((begin, begin + len(str(p[which])),),
                            self.__sourceMapping)

    def Parse(self, text, sourceName='<unknown>', **kwargs):
        self.lexer.reset_lineno()
        self.__sourceMapping = ast.SourceMapping(text, sourceName)
        return self.parser.parse(text, lexer=self.lexer, **kwargs)

    precedence = (
        ('right', 'CONDOP', ':'),
        ('left', 'LOR'),
        ('left', 'LAND'),
        ('left', 'OR'),
        ('left', 'XOR'),
        ('left', 'AND'),
        ('left', 'EQ', 'NE'),
        ('left', 'GT', 'GE', 'LT', 'LE'),
        ('left', 'PLUS', 'MINUS'),
        ('left', 'TIMES', 'DIVIDE', 'MOD'),
        ('right', 'UMINUS', 'LNOT', 'NOT'),
    )

    def p_module_1(self, p):
        '''module : module_item'''
        p[0] = ast.Module()
        p[1](p[0])

    def p_module_2(self, p):
        '''module : module module_item'''
        p[0] = p[1]
        p[2](p[0])

    def p_module_item_1(self, p):
        '''module_item : pipeline'''
        pipeline = p[1]
        p[0] = lambda module: module.AddPipeline(pipeline)

    def p_module_item_2(self, p):
        '''module_item : structure_definition'''
        structure = p[1]
        p[0] = lambda module: module.AddType(structure)

    def p_module_item_3(self, p):
        '''module_item : constant_declaration'''
        constant = p[1]
        p[0] = lambda module: module.AddConstant(constant)

    def p_empty(self, p):
        '''empty :'''
        pass

    def p_structure_definition(self, p):
        '''structure_definition : STRUCT ID '{' field_list_opt '}' '''
        p[0] = ast.StructureDefinition(p[2], p[4])
        p[0].SetLocation(self.__GetLocation(p, 2))

    def p_field_list_1(self, p):
        '''field_list : field ';' '''
        p[0] = [p[1]]

    def p_field_list_2(self, p):
        '''field_list : field_list field ';' '''
        p[0] = p[1]
        p[0].append(p[2])

    def p_field_list_opt_1(self, p):
        '''field_list_opt : field_list'''
        p[0] = p[1]

    def p_field_list_opt_2(self, p):
        '''field_list_opt : empty'''
        p[0] = []

    def p_field(self, p):
        '''field : type ID'''
        p[0] = ast.VariableDeclaration(p[1], p[2])
        p[0].SetLocation(self.__GetLocation(p, 2))

    def p_constant_declaration(self, p):
        '''constant_declaration : CONST type ID EQUALS expression ';' '''
        p[0] = ast.ConstantDeclaration(p[2], p[3], p[5])
        p[0].SetLocation(self.__GetLocation(p, 3))

    def p_pipeline(self, p):
        '''pipeline : PIPELINE ID '(' parameter_list_opt ')' compound_statement'''
        p[0] = ast.Pipeline(p[2], p[4], p[6])
        p[0].SetLocation(self.__GetLocation(p, 2))

    def p_parameter_list_1(self, p):
        '''parameter_list : parameter'''
        p[0] = [p[1]]

    def p_parameter_list_2(self, p):
        '''parameter_list : parameter_list ',' parameter'''
        p[0] = p[1]
        p[0].append(p[3])

    def p_parameter_list_opt_1(self, p):
        '''parameter_list_opt : parameter_list'''
        p[0] = p[1]

    def p_parameter_list_opt_2(self, p):
        '''parameter_list_opt : empty'''
        p[0] = []

    _roles = {
        'uniform': ast.ParameterRole.Uniform,
        'position': ast.ParameterRole.Position,
        'vertex_buffer': ast.ParameterRole.VertexBuffer,
        'instance_buffer': ast.ParameterRole.InstanceBuffer,
        'vertex_texture': ast.ParameterRole.VertexTexture,
        'fragment_texture': ast.ParameterRole.FragmentTexture,
        'color_target': ast.ParameterRole.ColorTarget,
    }

    _slotRoles = {
        ast.ParameterRole.VertexBuffer,
        ast.ParameterRole.InstanceBuffer,
        ast.ParameterRole.VertexTexture,
        ast.ParameterRole.FragmentTexture,
        ast.ParameterRole.ColorTarget,
    }

    def __GetRole(self, p, which, hasSlot):
        '''Role words are plain identifiers, so ``position`` stays usable
        as a field or variable name.'''
        role = self._roles.get(p[which])
        if role is None or (role in self._slotRoles) != hasSlot:
            Errors.ERROR_SYNTAX.Raise(p[which],
                                      location=self.__GetLocation(p, which))
        return role

    def __MakeParameter(self, p, role, slot, parameterType):
        name = len(p) - 1
        p[0] = ast.Parameter(role, parameterType, p[name], slot)
        p[0].SetLocation(self.__GetLocation(p, name))

    def p_parameter_1(self, p):
        '''parameter : parameter_type ID'''
        # Parameters without a role are uniform captures
        self.__MakeParameter(p, ast.ParameterRole.Uniform, None, p[1])

    def p_parameter_2(self, p):
        '''parameter : ID ID'''
        self.__MakeParameter(p, ast.ParameterRole.Uniform, None,
                             types.UnresolvedType(p[1]))

    def p_parameter_3(self, p):
        '''parameter : ID parameter_type ID'''
        self.__MakeParameter(p, self.__GetRole(p, 1, False), None, p[2])

    def p_parameter_4(self, p):
        '''parameter : ID ID ID'''
        self.__MakeParameter(p, self.__GetRole(p, 1, False), None,
                             types.UnresolvedType(p[2]))

    def p_parameter_5(self, p):
        '''parameter : ID '(' INT_CONST_DEC ')' parameter_type ID'''
        self.__MakeParameter(p, self.__GetRole(p, 1, True),
                             int(p[3].rstrip('uU')), p[5])

    def p_parameter_6(self, p):
        '''parameter : ID '(' INT_CONST_DEC ')' ID ID'''
        self.__MakeParameter(p, self.__GetRole(p, 1, True),
                             int(p[3].rstrip('uU')),
                             types.UnresolvedType(p[5]))

    def p_parameter_type_1(self, p):
        '''parameter_type : primitive_type'''
        p[0] = types.UnresolvedType(p[1])

    def p_parameter_type_2(self, p):
        '''parameter_type : texture_kind'''
        p[0] = types.UnresolvedType(p[1], 'float')

    def p_parameter_type_3(self, p):
        '''parameter_type : texture_kind LT texture_component GT'''
        p[0] = types.UnresolvedType(p[1], p[3])

    def p_texture_kind(self, p):
        '''texture_kind : TEXTURE1D
        | TEXTURE1D_ARRAY
        | TEXTURE2D
        | TEXTURE2D_ARRAY
        | TEXTURE3D
        | TEXTURECUBE
        | TEXTURECUBE_ARRAY'''
        p[0] = p[1]

    def p_texture_component(self, p):
        '''texture_component : FLOAT
        | INT
        | UINT'''
        p[0] = p[1]

    def p_type_1(self, p):
        '''type : primitive_type'''
        p[0] = types.UnresolvedType(p[1])

    def p_type_2(self, p):
        '''type : ID'''
        p[0] = types.UnresolvedType(p[1])

    def p_primitive_type(self, p):
        '''primitive_type : FLOAT
            | FLOAT2
            | FLOAT3
            | FLOAT4
            | DOUBLE
            | DOUBLE2
            | DOUBLE3
            | DOUBLE4
            | INT
            | INT2
            | INT3
            | INT4
            | UINT
            | UINT2
            | UINT3
            | UINT4
            | BOOL
            | BOOL2
            | BOOL3
            | BOOL4
            | INT64
            | UINT64
            | FLOAT2X2
            | FLOAT3X3
            | FLOAT4X4
            | SAMPLER'''
        p[0] = p[1]

    def p_statement(self, p):
        '''statement : declaration_statement
        | expression_statement
        | compound_statement
        | selection_statement
        | iteration_statement
        | jump_statement
        | empty_statement'''
        p[0] = p[1]

    def p_statement_list_1(self, p):
        '''statement_list : statement_list statement'''
        p[1].append(p[2])
        p[0] = p[1]

    def p_statement_list_2(self, p):
        '''statement_list : statement'''
        p[0] = [p[1]]

    def p_statement_list_opt_1(self, p):
        '''statement_list_opt : statement_list'''
        p[0] = p[1]

    def p_statement_list_opt_2(self, p):
        '''statement_list_opt : empty'''
        p[0] = []

    def p_empty_statement(self, p):
        '''empty_statement : ';' '''
        p[0] = ast.EmptyStatement()

    def p_declaration_statement(self, p):
        '''declaration_statement : var_decl ';' '''
        p[0] = ast.DeclarationStatement(p[1])
        p[0].SetLocation(p[1].GetLocation())

    def p_var_decl_1(self, p):
        '''var_decl : type ID'''
        p[0] = ast.VariableDeclaration(p[1], p[2])
        p[0].SetLocation(self.__GetLocation(p, 2))

    def p_var_decl_2(self, p):
        '''var_decl : type ID EQUALS expression'''
        p[0] = ast.VariableDeclaration(p[1], p[2], p[4])
        p[0].SetLocation(self.__GetLocation(p, 2))

    def p_var_decl_opt_1(self, p):
        '''var_decl_opt : var_decl'''
        p[0] = p[1]

    def p_var_decl_opt_2(self, p):
        '''var_decl_opt : empty'''
        p[0] = None

    def p_expression_statement(self, p):
        '''expression_statement : expression ';' '''
        p[0] = ast.ExpressionStatement(p[1])
        p[0].SetLocation(p[1].GetLocation())

    def p_compound_statement(self, p):
        '''compound_statement : '{' statement_list_opt '}' '''
        p[0] = ast.CompoundStatement(p[2])

    def p_selection_statement_1(self, p):
        '''selection_statement : IF '(' expression ')' statement'''
        p[0] = ast.IfStatement(p[3], p[5])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_selection_statement_2(self, p):
        '''selection_statement : IF '(' expression ')' statement ELSE statement'''
        p[0] = ast.IfStatement(p[3], p[5], p[7])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_iteration_statement_1(self, p):
        '''iteration_statement : FOR '(' var_decl_opt ';' expression_opt ';' expression_opt ')' statement'''
        p[0] = ast.ForStatement(p[3], p[5], p[7], p[9])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_iteration_statement_2(self, p):
        '''iteration_statement : WHILE '(' expression ')' statement'''
        p[0] = ast.WhileStatement(p[3], p[5])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_iteration_statement_3(self, p):
        '''iteration_statement : DO compound_statement WHILE '(' expression ')' ';' '''
        p[0] = ast.DoStatement(p[5], p[2])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_jump_statement_1(self, p):
        '''jump_statement : CONTINUE ';' '''
        p[0] = ast.ContinueStatement()
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_jump_statement_2(self, p):
        '''jump_statement : BREAK ';' '''
        p[0] = ast.BreakStatement()
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_jump_statement_3(self, p):
        '''jump_statement : RETURN expression_opt ';' '''
        p[0] = ast.ReturnStatement(p[2])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_expression(self, p):
        '''expression : unary_expression
        | binary_expression
        | assignment_expression
        | conditional_expression'''
        p[0] = p[1]

    def p_expression_opt_1(self, p):
        '''expression_opt : expression'''
        p[0] = p[1]

    def p_expression_opt_2(self, p):
        '''expression_opt : empty'''
        p[0] = None

    def p_expression_list_1(self, p):
        '''expression_list : expression'''
        p[0] = [p[1]]

    def p_expression_list_2(self, p):
        '''expression_list : expression_list ',' expression'''
        p[0] = p[1]
        p[0].append(p[3])

    def p_expression_list_opt_1(self, p):
        '''expression_list_opt : expression_list'''
        p[0] = p[1]

    def p_expression_list_opt_2(self, p):
        '''expression_list_opt : empty'''
        p[0] = []

    def p_constant_integer_expression_1(self, p):
        '''constant_integer_expression : INT_CONST_DEC'''
        if p[1][-1] in 'uU':
            p[0] = ast.LiteralExpression(int(p[1][:-1]),
                                         types.UnsignedInteger())
        else:
            p[0] = ast.LiteralExpression(int(p[1]), types.Integer())
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_constant_integer_expression_2(self, p):
        '''constant_integer_expression : INT_CONST_HEX'''
        # First two characters are 0x or 0X, so we have to skip them
        value = p[1][2:]
        if value[-1] in 'uU':
            p[0] = ast.LiteralExpression(int(value[:-1], 16),
                                         types.UnsignedInteger())
        else:
            p[0] = ast.LiteralExpression(int(value, 16), types.Integer())
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_constant_float_expression(self, p):
        '''constant_float_expression : FLOAT_CONST'''
        value = p[1]
        if value[-1] in 'fF':
            value = value[:-1]
        p[0] = ast.LiteralExpression(float(value), types.Float())
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_constant_bool_expression(self, p):
        '''constant_bool_expression : TRUE
        | FALSE'''
        p[0] = ast.LiteralExpression(p[1] == 'true', types.Bool(), p[1])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_unary_expression_1(self, p):
        '''unary_expression : ID'''
        p[0] = ast.PrimaryExpression(p[1])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_unary_expression_2(self, p):
        '''unary_expression : constant_integer_expression
        | constant_float_expression
        | constant_bool_expression
        | member_access_expression
        | method_call_expression
        | function_call_expression
        | construct_expression'''
        p[0] = p[1]

    def p_unary_expression_3(self, p):
        '''unary_expression : '(' expression ')' '''
        p[0] = p[2]

    def p_unary_expression_4(self, p):
        '''unary_expression : MINUS expression %prec UMINUS
        | LNOT expression
        | NOT expression'''
        if p[1] == '-':
            p[0] = ast.UnaryExpression(op.Operation.UA_NEG, p[2])
        else:
            p[0] = ast.UnaryExpression(op.StrToOp(p[1]), p[2])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_function_call_expression(self, p):
        '''function_call_expression : ID '(' expression_list_opt ')' '''
        p[0] = ast.CallExpression(types.UnresolvedType(p[1]), p[3])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_construct_expression(self, p):
        '''construct_expression : primitive_type '(' expression_list_opt ')' '''
        p[0] = ast.ConstructExpression(types.UnresolvedType(p[1]), p[3])
        p[0].SetLocation(self.__GetLocation(p, 1))

    def p_member_access_expression(self, p):
        '''member_access_expression : unary_expression '.' ID'''
        p[0] = ast.MemberAccessExpression(p[1], p[3])
        p[0].SetLocation(self.__GetLocation(p, 3))

    def p_method_call_expression(self, p):
        '''method_call_expression : unary_expression '.' ID '(' expression_list_opt ')' '''
        p[0] = ast.MethodCallExpression(p[1], types.UnresolvedType(p[3]),
                                        p[5])
        p[0].SetLocation(self.__GetLocation(p, 3))

    def p_binary_expression(self, p):
        '''binary_expression : expression PLUS expression
        | expression MINUS expression
        | expression TIMES expression
        | expression DIVIDE expression
        | expression MOD expression
        | expression LT expression
        | expression GT expression
        | expression LE expression
        | expression GE expression
        | expression EQ expression
        | expression NE expression
        | expression LAND expression
        | expression LOR expression
        | expression AND expression
        | expression OR expression
        | expression XOR expression'''
        p[0] = ast.BinaryExpression(op.StrToOp(p[2]), p[1], p[3])
        p[0].SetLocation(self.__GetLocation(p, 2))

    def p_conditional_expression(self, p):
        '''conditional_expression : expression CONDOP expression ':' expression'''
        p[0] = ast.ConditionalExpression(p[1], p[3], p[5])
        p[0].SetLocation(self.__GetLocation(p, 2))

    def p_assignment_op(self, p):
        '''assignment_op : EQUALS
        | PLUSEQUAL
        | MINUSEQUAL
        | DIVEQUAL
        | TIMESEQUAL'''
        p[0] = op.StrToOp(p[1])

    def p_assignment_expression(self, p):
        '''assignment_expression : unary_expression assignment_op expression'''
        p[0] = ast.AssignmentExpression(p[1], p[3], operation=p[2])
        p[0].SetLocation(p[1].GetLocation())

    def p_error(self, t):
        if t is None:
            Errors.ERROR_SYNTAX.Raise('end of input')
        Errors.ERROR_SYNTAX.Raise(
            t.value, location=ast.Location(
                (t.lexpos, t.lexpos + len(str(t.value)),),
                self.__sourceMapping))
