from collections import OrderedDict
import itertools

from psl import types


class Universe:
    '''The declarations a pipeline program can refer to.

    Every builtin type, function, method and constant exists exactly once
    in a universe. The builtin catalog identifies builtins by these
    canonical objects, so a user structure which happens to share a name
    with a builtin is never mistaken for it.'''
    def __init__(self):
        self.__types = OrderedDict()
        self.__functions = OrderedDict()
        self.__methods = OrderedDict()
        self.__constants = OrderedDict()

    def RegisterType(self, name, declaration):
        assert name not in self.__types
        self.__types[name] = declaration

    def RegisterFunction(self, declaration):
        assert declaration.GetName() not in self.__functions
        self.__functions[declaration.GetName()] = declaration

    def RegisterMethod(self, declaration):
        key = (declaration.GetReceiver(), declaration.GetName(),)
        assert key not in self.__methods
        self.__methods[key] = declaration

    def RegisterConstant(self, name, enumType):
        assert name in enumType.GetValues()
        self.__constants[name] = enumType

    def Remove(self, name):
        '''Remove every declaration called ``name``.'''
        self.__types.pop(name, None)
        self.__functions.pop(name, None)
        self.__constants.pop(name, None)
        for key in [k for k in self.__methods if k[1] == name]:
            del self.__methods[key]

    def GetType(self, name):
        return self.__types.get(name)

    def GetTypes(self):
        return self.__types.items()

    def GetFunction(self, name):
        return self.__functions.get(name)

    def GetMethod(self, receiver, name):
        return self.__methods.get((receiver, name,))

    def GetConstant(self, name):
        '''Returns the enumeration type declaring ``name``, or ``None``.'''
        return self.__constants.get(name)

    def GetCanonicalType(self, t):
        '''Map a structurally computed type (for instance the result of a
        multiplication) to its canonical declaration. Types without a
        canonical declaration are returned unchanged.'''
        if isinstance(t, (types.PrimitiveType, types.TextureType)):
            candidate = self.__types.get(t.GetName())
            if candidate is not None and repr(candidate) == repr(t):
                return candidate
        return t


FILTER = types.EnumType('filter', [('linear', 0), ('nearest', 1)])
WRAP = types.EnumType('wrap', [('repeat', 0), ('clamp', 1)])

TEXTURE_KINDS = [
    ('texture1d', 1,),
    ('texture1d_array', 2,),
    ('texture2d', 2,),
    ('texture2d_array', 3,),
    ('texture3d', 3,),
    ('texturecube', 3,),
    ('texturecube_array', 4,),
]

SWIZZLE_COMPONENTS = 'xyzw'


def _Same(argumentTypes):
    return argumentTypes[0]


def _Last(argumentTypes):
    return argumentTypes[-1]


def _Scalar(argumentTypes):
    return argumentTypes[0].GetComponentType()


def _Transpose(argumentTypes):
    m = argumentTypes[0]
    return types.MatrixType(m.GetComponentType(), m.GetColumnCount(),
                            m.GetRowCount())


# name, argument count, return rule
STANDARD_FUNCTIONS = [
    ('abs', 1, _Same,),
    ('ceil', 1, _Same,),
    ('clamp', 3, _Same,),
    ('cos', 1, _Same,),
    ('cross', 2, _Same,),
    ('distance', 2, _Scalar,),
    ('dot', 2, _Scalar,),
    ('exp', 1, _Same,),
    ('floor', 1, _Same,),
    ('fract', 1, _Same,),
    ('length', 1, _Scalar,),
    ('log', 1, _Same,),
    ('max', 2, _Same,),
    ('min', 2, _Same,),
    ('mix', 3, _Same,),
    ('normalize', 1, _Same,),
    ('pow', 2, _Same,),
    ('reflect', 2, _Same,),
    ('rsqrt', 1, _Same,),
    ('sin', 1, _Same,),
    ('smoothstep', 3, _Last,),
    ('sqrt', 1, _Same,),
    ('step', 2, _Last,),
    ('tan', 1, _Same,),
    ('transpose', 1, _Transpose,),
]


def GetSwizzleMasks():
    '''All swizzle masks of length 1 to 4 over ``xyzw``.'''
    for length in range(1, 5):
        for mask in itertools.product(SWIZZLE_COMPONENTS, repeat=length):
            yield ''.join(mask)


def _SwizzleResult(mask):
    def Rule(receiverType, argumentTypes):
        componentType = receiverType.GetComponentType()
        if len(mask) == 1:
            return componentType
        return types.VectorType(componentType, len(mask))
    return Rule


def _SampleResult(receiverType, argumentTypes):
    return receiverType.GetSampleType()


def CreateStandardUniverse():
    '''Create the universe with all builtin declarations.'''
    universe = Universe()

    scalars = [
        ('float', types.Float(),),
        ('double', types.Double(),),
        ('int', types.Integer(),),
        ('uint', types.UnsignedInteger(),),
        ('bool', types.Bool(),),
    ]
    for name, scalar in scalars:
        universe.RegisterType(name, scalar)
    for name, scalar in scalars:
        for count in range(2, 5):
            universe.RegisterType('{}{}'.format(name, count),
                                  types.VectorType(scalar, count))

    for size in range(2, 5):
        universe.RegisterType('float{0}x{0}'.format(size),
                              types.MatrixType(types.Float(), size, size))

    # 64-bit integers exist so they can be named (and rejected) in records
    universe.RegisterType('int64', types.Integer(64))
    universe.RegisterType('uint64', types.UnsignedInteger(64))

    for kind, coordinates in TEXTURE_KINDS:
        for componentName in ('float', 'int', 'uint',):
            textureType = types.TextureType(
                kind, universe.GetType(componentName), coordinates)
            universe.RegisterType(textureType.GetName(), textureType)
        universe.RegisterMethod(types.Method(kind, 'sample', 2,
                                             _SampleResult))

    for enumType in (FILTER, WRAP,):
        universe.RegisterType(enumType.GetName(), enumType)
        for name in enumType.GetValues():
            universe.RegisterConstant(name, enumType)
    universe.RegisterType('sampler', types.StructType('sampler', [
        ('filter', FILTER,),
        ('wrap', WRAP,),
    ]))

    for name, argumentCount, rule in STANDARD_FUNCTIONS:
        universe.RegisterFunction(types.Function(name, argumentCount, rule))

    for mask in GetSwizzleMasks():
        universe.RegisterMethod(types.Method('vector', mask, 0,
                                             _SwizzleResult(mask)))

    return universe
