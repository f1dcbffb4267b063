"""Mail.app collaborator — unread, search, send, mailboxes and accounts."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from apple_mcp.apps.targets import MAIL
from apple_mcp.apps.types import (
    CONTENT_UNAVAILABLE,
    NO_SUBJECT,
    UNKNOWN_DATE,
    UNKNOWN_MAILBOX,
    UNKNOWN_SENDER,
    EmailMessage,
)
from apple_mcp.bridge import AutomationBridge, ObjectModelQuery
from apple_mcp.bridge.parsing import (
    escape_applescript_string,
    parse_list,
    truncate_preview,
    unquote,
)
from apple_mcp.config import BridgeConfig
from apple_mcp.errors import AutomationQueryFailed

logger = logging.getLogger(__name__)


def _text(fields: Mapping[str, Any], *keys: str) -> str | None:
    """First non-blank value among ``keys``, as text."""
    for key in keys:
        value = fields.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


@dataclass(frozen=True)
class MailRecordSpec:
    """Builds EmailMessage records from AppleScript groups or JXA objects.

    ``is_read`` forces the read flag (unread queries); ``None`` reads it from
    the ``isRead`` field.  ``account`` prefixes the mailbox label.
    """

    identifying_fields: ClassVar[tuple[str, ...]] = ("subject", "sender")

    preview_length: int = 500
    is_read: bool | None = False
    account: str | None = None

    def build(self, fields: Mapping[str, Any]) -> EmailMessage:
        mailbox = _text(fields, "mailbox", "boxName")
        if self.account:
            mailbox = f"{self.account} - {mailbox or 'Unknown'}"
        is_read = self.is_read if self.is_read is not None else _flag(fields.get("isRead", False))
        return EmailMessage(
            subject=_text(fields, "subject") or NO_SUBJECT,
            sender=_text(fields, "sender") or UNKNOWN_SENDER,
            date_sent=_text(fields, "dateSent", "date") or UNKNOWN_DATE,
            content=truncate_preview(_text(fields, "content") or CONTENT_UNAVAILABLE, self.preview_length),
            is_read=is_read,
            mailbox=mailbox or UNKNOWN_MAILBOX,
        )

    def diagnostic(self, raw: str) -> EmailMessage:
        return EmailMessage(
            subject="Raw AppleScript Output",
            sender="Mail System",
            date_sent=UNKNOWN_DATE,
            content=truncate_preview(
                f"Could not parse Mail data properly. Raw output: {raw}", self.preview_length
            ),
            is_read=False,
            mailbox="Debug",
        )


# ── Scripts ────────────────────────────────────────────────────────────────────

_MESSAGE_RECORD = """
                        set msgData to {subject:(subject of currentMsg), sender:(sender of currentMsg), ¬
                            dateSent:((date sent of currentMsg) as string), mailbox:(name of mb)}
                        try
                            set msgContent to content of currentMsg
                            if length of msgContent > %(preview)d then
                                set msgContent to (text 1 thru %(cut)d of msgContent) & "..."
                            end if
                            set msgData to msgData & {content:msgContent}
                        on error
                            set msgData to msgData & {content:"[Content not available]"}
                        end try
                        set end of resultList to msgData"""

_UNREAD_LOOP = """
    repeat with mb in mailboxesToSearch
        try
            set unreadMessages to (messages of mb whose read status is false)
            set msgLimit to %(limit)d - (count of resultList)
            if (count of unreadMessages) < msgLimit then set msgLimit to (count of unreadMessages)
            repeat with i from 1 to msgLimit
                try
                    set currentMsg to item i of unreadMessages""" + _MESSAGE_RECORD + """
                on error
                    -- skip unreadable message
                end try
            end repeat
            if (count of resultList) >= %(limit)d then exit repeat
        on error
            -- skip unreadable mailbox
        end try
    end repeat"""


def unread_script(limit: int, preview_length: int) -> str:
    params = {"limit": limit, "preview": preview_length, "cut": max(preview_length - 3, 1)}
    return (
        'tell application "Mail"\n'
        "    set resultList to {}\n"
        "    set mailboxesToSearch to every mailbox\n"
        + _UNREAD_LOOP % params
        + "\n    return resultList\nend tell"
    )


def account_unread_script(account: str, mailbox: str | None, limit: int, preview_length: int) -> str:
    """Unread messages of one account; errors (unknown account) propagate."""
    params = {"limit": limit, "preview": preview_length, "cut": max(preview_length - 3, 1)}
    select_mailbox = ""
    if mailbox:
        select_mailbox = (
            "    set mailboxesToSearch to {}\n"
            "    repeat with mb in every mailbox of targetAccount\n"
            f'        if name of mb is "{escape_applescript_string(mailbox)}" then\n'
            "            set mailboxesToSearch to {mb}\n"
            "            exit repeat\n"
            "        end if\n"
            "    end repeat\n"
        )
    return (
        'tell application "Mail"\n'
        "    set resultList to {}\n"
        f'    set targetAccount to first account whose name is "{escape_applescript_string(account)}"\n'
        "    set mailboxesToSearch to every mailbox of targetAccount\n"
        + select_mailbox
        + _UNREAD_LOOP % params
        + "\n    return resultList\nend tell"
    )


def search_script(term: str, limit: int) -> str:
    return f"""tell application "Mail"
    set searchString to "{escape_applescript_string(term)}"
    set foundMsgs to {{}}
    repeat with currentBox in every mailbox
        try
            set boxMsgs to (messages of currentBox whose (subject contains searchString) or (content contains searchString))
            set foundMsgs to foundMsgs & boxMsgs
            if (count of foundMsgs) >= {limit} then exit repeat
        on error
            -- skip unreadable mailbox
        end try
    end repeat
    set resultList to {{}}
    set msgCount to (count of foundMsgs)
    if msgCount > {limit} then set msgCount to {limit}
    repeat with i from 1 to msgCount
        try
            set currentMsg to item i of foundMsgs
            set end of resultList to {{subject:subject of currentMsg, sender:sender of currentMsg, ¬
                dateSent:((date sent of currentMsg) as string), isRead:read status of currentMsg, ¬
                mailbox:name of (mailbox of currentMsg)}}
        on error
            -- skip unreadable message
        end try
    end repeat
    return resultList
end tell"""


def send_script(to: str, subject: str, body: str, cc: str | None, bcc: str | None) -> str:
    lines = [
        'tell application "Mail"',
        "    set newMessage to make new outgoing message with properties "
        f'{{subject:"{escape_applescript_string(subject)}", '
        f'content:"{escape_applescript_string(body)}", visible:true}}',
        "    tell newMessage",
        f'        make new to recipient with properties {{address:"{escape_applescript_string(to)}"}}',
    ]
    if cc:
        lines.append(f'        make new cc recipient with properties {{address:"{escape_applescript_string(cc)}"}}')
    if bcc:
        lines.append(f'        make new bcc recipient with properties {{address:"{escape_applescript_string(bcc)}"}}')
    lines += [
        "    end tell",
        "    send newMessage",
        '    return "success"',
        "end tell",
    ]
    return "\n".join(lines)


ACCOUNTS_SCRIPT = """tell application "Mail"
    set acctNames to {}
    repeat with a in accounts
        set end of acctNames to name of a
    end repeat
    return acctNames
end tell"""


def account_mailboxes_script(account: str) -> str:
    return f"""tell application "Mail"
    set boxNames to {{}}
    try
        set targetAccount to first account whose name is "{escape_applescript_string(account)}"
        repeat with mb in every mailbox of targetAccount
            set end of boxNames to name of mb
        end repeat
    on error errMsg
        return "Error: " & errMsg
    end try
    return boxNames
end tell"""


JXA_UNREAD = """
function (limit, previewLength) {
  const Mail = Application("Mail");
  const results = [];
  for (const account of Mail.accounts()) {
    if (results.length >= limit) break;
    let accountName = "";
    try { accountName = account.name(); } catch (e) {}
    let boxes = [];
    try { boxes = account.mailboxes(); } catch (e) { continue; }
    for (const box of boxes) {
      if (results.length >= limit) break;
      let unread;
      try { unread = box.messages.whose({readStatus: false})(); } catch (e) { continue; }
      const count = Math.min(unread.length, limit - results.length);
      for (let i = 0; i < count; i++) {
        try {
          const msg = unread[i];
          const content = msg.content() || "";
          results.push({
            subject: msg.subject(),
            sender: msg.sender(),
            dateSent: msg.dateSent().toString(),
            content: content.substring(0, previewLength + 1),
            isRead: false,
            mailbox: accountName + " - " + box.name(),
          });
        } catch (e) {}
      }
    }
  }
  return results;
}
"""

JXA_SEARCH = """
function (term, limit, previewLength) {
  const Mail = Application("Mail");
  const results = [];
  for (const box of Mail.mailboxes()) {
    if (results.length >= limit) break;
    let found;
    try {
      found = box.messages.whose({_or: [
        {subject: {_contains: term}},
        {content: {_contains: term}},
      ]})();
    } catch (e) { continue; }
    const count = Math.min(found.length, limit - results.length);
    for (let i = 0; i < count; i++) {
      try {
        const msg = found[i];
        const content = msg.content() || "";
        results.push({
          subject: msg.subject(),
          sender: msg.sender(),
          dateSent: msg.dateSent().toString(),
          content: content.substring(0, previewLength + 1),
          isRead: msg.readStatus(),
          mailbox: box.name(),
        });
      } catch (e) {}
    }
  }
  return results;
}
"""

JXA_SEND = """
function (to, subject, body, cc, bcc) {
  const Mail = Application("Mail");
  const msg = Mail.OutgoingMessage({subject: subject, content: body, visible: true});
  Mail.outgoingMessages.push(msg);
  msg.toRecipients.push(Mail.Recipient({address: to}));
  if (cc) { msg.ccRecipients.push(Mail.CcRecipient({address: cc})); }
  if (bcc) { msg.bccRecipients.push(Mail.BccRecipient({address: bcc})); }
  msg.send();
  return "JXA send completed";
}
"""

JXA_MAILBOXES = """
function () {
  const Mail = Application("Mail");
  return Mail.mailboxes().map(function (box) {
    try { return box.name(); } catch (e) { return "Unknown mailbox"; }
  });
}
"""


# ── Client ─────────────────────────────────────────────────────────────────────


class MailClient:
    """Typed async API over Mail.app.

    Every method returns a list (possibly empty) or raises an
    ``AutomationError`` subclass; none return None.
    """

    def __init__(self, bridge: AutomationBridge, config: BridgeConfig | None = None) -> None:
        self._bridge = bridge
        self._preview_length = (config or BridgeConfig()).preview_length

    async def get_unread_mails(
        self,
        limit: int = 10,
        account: str | None = None,
        mailbox: str | None = None,
    ) -> list[EmailMessage]:
        """Return up to ``limit`` unread messages, optionally from one account.

        An account-scoped query that fails (e.g. unknown account name) falls
        back to the all-accounts query.
        """
        if account:
            logger.info("Getting unread emails for account: %s", account)
            try:
                return await self._bridge.query(
                    MAIL,
                    script=account_unread_script(account, mailbox, limit, self._preview_length),
                    spec=MailRecordSpec(self._preview_length, is_read=False, account=account),
                    limit=limit,
                )
            except AutomationQueryFailed as exc:
                logger.warning("Account-specific unread query failed, using general query: %s", exc)

        return await self._bridge.query(
            MAIL,
            script=unread_script(limit, self._preview_length),
            spec=MailRecordSpec(self._preview_length, is_read=False),
            limit=limit,
            fallback=ObjectModelQuery(JXA_UNREAD, (limit, self._preview_length)),
        )

    async def search_mails(self, term: str, limit: int = 10) -> list[EmailMessage]:
        """Messages whose subject or body contains ``term``."""
        return await self._bridge.query(
            MAIL,
            script=search_script(term, limit),
            spec=MailRecordSpec(self._preview_length, is_read=None),
            limit=limit,
            fallback=ObjectModelQuery(JXA_SEARCH, (term, limit, self._preview_length)),
        )

    async def send_mail(
        self,
        to: str,
        subject: str,
        body: str,
        cc: str | None = None,
        bcc: str | None = None,
    ) -> str:
        """Compose and send a message; returns a confirmation sentence."""
        await self._bridge.command(
            MAIL,
            script=send_script(to, subject, body, cc, bcc),
            fallback=ObjectModelQuery(JXA_SEND, (to, subject, body, cc, bcc)),
        )
        logger.info("Sent email to %s: %r", to, subject)
        return f'Email sent to {to} with subject "{subject}"'

    async def get_mailboxes(self) -> list[str]:
        names = await self._bridge.evaluate(MAIL, JXA_MAILBOXES)
        if not isinstance(names, list):
            return []
        return [str(name) for name in names if name]

    async def get_accounts(self) -> list[str]:
        return parse_list(await self._bridge.run_text(MAIL, ACCOUNTS_SCRIPT))

    async def get_mailboxes_for_account(self, account: str) -> list[str]:
        """Mailbox names of ``account``; an unknown account yields ``[]``."""
        output = await self._bridge.run_text(MAIL, account_mailboxes_script(account))
        if unquote(output.strip()).startswith("Error:"):
            logger.error("Could not list mailboxes for %r: %s", account, unquote(output.strip()))
            return []
        return parse_list(output)
