"""
Argtree builder: turn a schema class into a tree of processors.

What this module provides
- TreeBuilder: walks a schema class and registers, per slot:
  • Option  -> an option binding writing the attribute.
  • Command -> a child processor built from the slot's class, reached with
    the attribute read from the enclosing state at dispatch time.
  • Shell   -> the same, and the child processor owns a shell.
  • @command methods -> a leaf filling the method's parameters from the
    remaining tokens, then calling the method on the state.
- build(schema, prompt, **options): one-call builder.
- invoke(state, tokens, prompt, **options): build from type(state) and run.

Method commands
- Parameters tagged with Option (as default or inside Annotated[...]) are
  named options and need an explicit key; the others are positional.
- Every parameter starts from its Python default, or the zero value of its
  type. Positional parameters take one token each, in declaration order;
  named options may come before, between or after them.

Design notes
- Every built processor gets the UNRECOGNIZED default handler unless the
  builder is given another one.
- Slots are discovered base class first, in definition order, so help lists
  them the way the schema declares them.
- Schemas nesting themselves (directly or not) are rejected.
"""
import inspect
import typing
from inspect import Parameter

from .arguments import Option, Command, Shell
from .faults import *
from .handlers import LeafAction, ChildProcessor, UNRECOGNIZED
from .processor import CommandProcessor
from .slots import SlotBinding, SlotKind, attribute, index, fetch
from .utils import *


def _members(schema, /):
    members = {}
    for klass in reversed(schema.__mro__):
        if klass is object:
            continue
        members.update(vars(klass))
    return members


def _hints(object, /):
    try:
        return typing.get_type_hints(object, include_extras=True)
    except (NameError, TypeError) as exception:
        trigger(
            ConfigurationError(f"cannot resolve the annotations of {object.__qualname__!r}: {exception}"),
            code=FaultCode.INVALID_SCHEMA,
            title="invalid schema",
            hint="make sure every annotation names an importable type"
        )


def _marker(parameter, annotation, /):
    if isinstance(parameter.default, Option):
        return parameter.default
    if typing.get_origin(annotation) is typing.Annotated:
        for metadata in typing.get_args(annotation)[1:]:
            if isinstance(metadata, Option):
                return metadata
    return Unset


class TreeBuilder:
    """
    Build processor trees from schema classes.

    Parameters
    - default: handler run by every built processor when no command matched
      (UNRECOGNIZED unless overridden; None for no default).
    - strict, colorful, fancy, console, stdin: forwarded to every
      CommandProcessor the builder creates.
    """

    def __init__(
            self,
            *,
            default=UNRECOGNIZED,
            strict=False,
            colorful=False,
            fancy=False,
            console=Unset,
            stdin=Unset
    ):
        self._default = default
        self._options = {
            "strict": strict,
            "colorful": colorful,
            "fancy": fancy,
            "console": console,
            "stdin": stdin,
        }
        self._building = []

    def build(self, schema, prompt=Unset, /, *, name=Unset, parent=Unset):
        """
        Build the processor for schema (and, recursively, its nested schemas).

        Parameters
        - schema: type
          Class declaring Option/Command/Shell slots and @command methods.
        - prompt: Unset | str
          When given, the processor owns a shell with this prompt.
        - name / parent: forwarded to CommandProcessor.

        Raises
        - TypeError: schema is not a class.
        - ConfigurationError: unsupported slot types, duplicated keys or
          explicit shortcuts, a slot named "help", an untagged Option key on a method
          parameter, variadic method parameters, or a recursive schema.
        """
        if not isinstance(schema, type):
            raise TypeError("build() argument must be a class")
        if schema in self._building:
            trigger(
                ConfigurationError(f"schema {schema.__qualname__!r} contains itself"),
                code=FaultCode.INVALID_SCHEMA,
                title="invalid schema",
                hint="nested command slots must not lead back to an enclosing schema"
            )

        processor = CommandProcessor(prompt, name=name, parent=parent, **self._options)
        processor.set_default(self._default)

        self._building.append(schema)
        try:
            hints = _hints(schema)
            for member, value in _members(schema).items():
                match value:
                    case Shell():
                        self._bind_child(processor, schema, member, value, shell=True)
                    case Command():
                        self._bind_child(processor, schema, member, value)
                    case Option():
                        self._bind_option(processor, member, value, hints)
                    case _ if inspect.isfunction(value) and hasattr(value, "__command__"):
                        self._bind_method(processor, value)
        finally:
            self._building.pop()

        return processor

    def _bind_option(self, processor, member, marker, hints, /):
        if (annotation := coalesce(marker.type, hints.get(member, Unset))) is Unset:
            trigger(
                ConfigurationError(f"option slot {member!r} has no type"),
                code=FaultCode.UNSUPPORTED_TYPE,
                title="unsupported type",
                hint="annotate the slot or pass type=..."
            )
        binding = SlotBinding(
            key := coalesce(marker.key, member),
            attribute(member),
            shortcut=marker.shortcut,
            type=annotation,
            default=marker.default,
            must_exist=marker.must_exist
        )
        processor.add_option(key, binding.shortcut, binding, derived=marker.shortcut is Unset)

    def _bind_child(self, processor, schema, member, marker, /, *, shell=False):
        key = coalesce(marker.key, member)
        if (nested := marker.schema(schema)) is Unset:
            trigger(
                ConfigurationError(f"command slot {member!r} has no schema class"),
                code=FaultCode.INVALID_SCHEMA,
                title="invalid schema",
                hint="annotate the slot with a class or pass factory=<class>"
            )
        prompt = (marker.prompt or key) if shell else Unset
        child = self.build(nested, prompt, name=key, parent=processor)
        processor.add_command(key, ChildProcessor(child, fetch(member)))

    def _bind_method(self, processor, function, /):
        key = function.__command__
        hints = _hints(function)
        parameters = list(inspect.signature(function).parameters.values())
        if not parameters or parameters[0].kind not in (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD):
            trigger(
                ConfigurationError(f"command method {function.__qualname__!r} must take the state first"),
                code=FaultCode.INVALID_SCHEMA,
                title="invalid schema",
                hint="declare command methods as regular instance methods"
            )
        parameters = parameters[1:]

        synthetic = CommandProcessor(name=key, parent=processor, **self._options)
        defaults = []
        positionals = []

        for position, parameter in enumerate(parameters):
            if parameter.kind in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD):
                trigger(
                    ConfigurationError(f"command method {function.__qualname__!r} has variadic parameter {parameter.name!r}"),
                    code=FaultCode.INVALID_SCHEMA,
                    title="invalid schema",
                    hint="use a greedy() command to receive every remaining token"
                )
            annotation = hints.get(parameter.name, Unset)
            marker = _marker(parameter, annotation)
            if (kind := coalesce(marker.type if marker else Unset, annotation)) is Unset:
                trigger(
                    ConfigurationError(f"parameter {parameter.name!r} of {function.__qualname__!r} has no type"),
                    code=FaultCode.UNSUPPORTED_TYPE,
                    title="unsupported type",
                    hint="annotate the parameter"
                )
            if marker:
                if marker.key is Unset:
                    trigger(
                        ConfigurationError(f"option parameter {parameter.name!r} of {function.__qualname__!r} needs a key"),
                        code=FaultCode.MISSING_OPTION_KEY,
                        title="missing option key",
                        hint=f"write Option({parameter.name!r}) instead of Option()"
                    )
                binding = SlotBinding(
                    marker.key,
                    index(position),
                    shortcut=marker.shortcut,
                    type=kind,
                    default=marker.default,
                    must_exist=marker.must_exist
                )
                synthetic.add_option(binding.key, binding.shortcut, binding, derived=marker.shortcut is Unset)
            else:
                binding = SlotBinding(
                    parameter.name,
                    index(position),
                    kind=SlotKind.POSITIONAL,
                    type=kind,
                    default=parameter.default if parameter.default is not Parameter.empty else Unset
                )
                positionals.append(binding)
            defaults.append(binding.default)

        filled = []

        @rename(f"{key}_positionals")
        def fill(queue, values):
            filled.append(True)
            for binding in positionals:
                synthetic.scan(queue, values)
                if not queue:
                    break
                binding(queue, values)
            synthetic.scan(queue, values)
            if queue:
                synthetic.trigger(
                    UnparsedTokensWarning(f"unparsed tokens {queue.drain()!r}"),
                    code=FaultCode.UNPARSED_TOKENS,
                    title="unparsed tokens",
                    hint=f"run '{key} help' to list the accepted options"
                )

        synthetic.set_default(fill)

        @rename(key)
        def call(queue, state):
            values = list(defaults)
            filled.clear()
            synthetic.process(queue, values)
            if not filled:
                return
            args, kwargs = [], {}
            for parameter, value in zip(parameters, values):
                if parameter.kind is Parameter.KEYWORD_ONLY:
                    kwargs[parameter.name] = value
                else:
                    args.append(value)
            function(state, *args, **kwargs)

        processor.add_command(key, LeafAction(call))


def build(schema, prompt=Unset, /, **options):
    """
    Build the processor tree for schema in one call.

    Options
    - name: root display name; every other option is a TreeBuilder option.
    """
    name = options.pop("name", Unset)
    return TreeBuilder(**options).build(schema, prompt, name=name)


def invoke(state, tokens=Unset, /, prompt=Unset, **options):
    """
    Build the tree for type(state) and dispatch tokens against state.

    Parameters
    - state: the application state instance.
    - tokens: Unset (sys.argv[1:]), str (shlex-split) or Iterable[str].
    - prompt: Unset | str, shell prompt of the root processor.
    - options: forwarded to build().

    Returns
    - the state, for chaining.
    """
    build(type(state), prompt, **options).process(tokens, state)
    return state


__all__ = (
    "TreeBuilder",
    "build",
    "invoke",
)
