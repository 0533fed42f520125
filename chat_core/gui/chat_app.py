import threading
import tkinter as tk
from tkinter import filedialog, messagebox, scrolledtext, simpledialog, ttk
from pathlib import Path

from chat_core.api.service import build_controller
from chat_core.domain.exceptions import BusinessError
from chat_core.gui.markup_view import to_segments
from chat_core.providers.registry import MODEL_REGISTRY
from chat_core.rendering.renderer import format_file_size, render_message

_ICONS = {"comment": "💬", "image": "🖼", "edit": "✏"}


class TextSurface:
    """把打字动画帧写入 Text 控件；可在工作线程调用，内部通过 root.after 切回 UI 线程。"""

    def __init__(self, root, text_widget):
        self.root = root
        self.text = text_widget
        self.text.mark_set("stream_start", tk.END)
        self.text.mark_gravity("stream_start", tk.LEFT)

    def update(self, markup):
        self.root.after(0, lambda: self._draw(markup))

    def commit(self, markup):
        self.root.after(0, lambda: self._draw(markup, final=True))

    def _draw(self, markup, final=False):
        self.text.delete("stream_start", tk.END)
        insert_segments(self.text, to_segments(markup))
        if final:
            self.text.insert(tk.END, "\n\n")
        self.text.see(tk.END)


def insert_segments(text_widget, segments):
    for chunk, tags in segments:
        text_widget.insert(tk.END, chunk, tags)


class App:
    def __init__(self, root, controller):
        self.root = root
        self.root.title("AI Studio")
        self.ctrl = controller
        self.sending = False
        main = tk.PanedWindow(root, orient=tk.HORIZONTAL)
        main.pack(fill=tk.BOTH, expand=True)
        left = tk.Frame(main)
        right = tk.Frame(main)
        main.add(left, minsize=220)
        main.add(right)

        tk.Label(left, text="Chats").pack(anchor=tk.W)
        self.conv_list = tk.Listbox(left, height=20)
        self.conv_list.pack(fill=tk.BOTH, expand=True)
        self.conv_list.bind("<<ListboxSelect>>", self.on_select_conv)
        lf_btns = tk.Frame(left)
        lf_btns.pack(fill=tk.X)
        tk.Button(lf_btns, text="New", command=self.on_new_chat).pack(side=tk.LEFT)
        tk.Button(lf_btns, text="Clear", command=self.on_clear_chat).pack(side=tk.LEFT)
        tk.Button(lf_btns, text="Delete", command=self.on_delete_chat).pack(side=tk.LEFT)
        tk.Button(lf_btns, text="Files", command=self.on_open_files).pack(side=tk.LEFT)
        tk.Button(lf_btns, text="API Key", command=self.on_api_key).pack(side=tk.LEFT)

        self.title_label = tk.Label(right, text="", font=("TkDefaultFont", 12, "bold"))
        self.title_label.pack(anchor=tk.W)
        self.chat = scrolledtext.ScrolledText(right, width=90, height=28, wrap=tk.WORD)
        self.chat.pack(fill=tk.BOTH, expand=True)
        self.chat.tag_config("user", foreground="#1a73e8")
        self.chat.tag_config("bold", font=("TkDefaultFont", 10, "bold"))
        self.chat.tag_config("italic", font=("TkDefaultFont", 10, "italic"))
        self.chat.tag_config("strike", overstrike=True)
        self.chat.tag_config("code", font=("TkFixedFont", 10), background="#f1f3f4")
        self.chat.tag_config("code_block", font=("TkFixedFont", 10), background="#202124", foreground="#e8eaed")
        self.chat.tag_config("lang", foreground="#5f6368")
        self.chat.tag_config("quote", lmargin1=20, lmargin2=20, foreground="#5f6368")
        self.chat.tag_config("image", foreground="#34a853")
        self.chat.tag_config("caption", foreground="#5f6368")
        self.chat.tag_config("error", foreground="#d93025")

        opts = tk.Frame(right)
        opts.pack(fill=tk.X)
        self.mode_var = tk.StringVar(value="chat")
        for mode in ("chat", "image", "edit"):
            tk.Radiobutton(opts, text=mode, value=mode, variable=self.mode_var, command=self.on_mode).pack(side=tk.LEFT)
        self.model_box = ttk.Combobox(opts, values=list(MODEL_REGISTRY), state="readonly", width=28)
        self.model_box.set(self.ctrl.state.model)
        self.model_box.bind("<<ComboboxSelected>>", lambda e: self.ctrl.set_model(self.model_box.get()))
        self.model_box.pack(side=tk.LEFT)
        self.json_var = tk.BooleanVar(value=False)
        tk.Checkbutton(opts, text="JSON", variable=self.json_var, command=self.ctrl.toggle_json_mode).pack(side=tk.LEFT)
        self.image_btn = tk.Button(opts, text="Upload image", command=self.on_upload_image)
        self.image_btn.pack(side=tk.LEFT)

        rt_in = tk.Frame(right)
        rt_in.pack(fill=tk.X)
        self.entry = tk.Entry(rt_in)
        self.entry.pack(side=tk.LEFT, fill=tk.X, expand=True)
        self.entry.bind("<Return>", self.on_send_event)
        self.send_btn = tk.Button(rt_in, text="Send", command=self.on_send)
        self.send_btn.pack(side=tk.LEFT)
        tk.Button(rt_in, text="Stop", command=self.ctrl.session.stop_generation).pack(side=tk.LEFT)
        self.status = tk.Label(right, text="", anchor=tk.W)
        self.status.pack(fill=tk.X)

        self.ctrl.startup()
        threading.Thread(target=self._check_server, daemon=True).start()
        self.refresh()
        if self.ctrl.is_open("api_key"):
            self.root.after(1000, self.on_api_key)

    # ---- 刷新 ----

    def refresh(self):
        self.refresh_convs()
        self.display_messages()
        self.status.config(text=self.ctrl.status_text())

    def refresh_convs(self):
        self.entries = self.ctrl.sidebar_entries()
        self.conv_list.delete(0, tk.END)
        for i, e in enumerate(self.entries):
            self.conv_list.insert(tk.END, f"{_ICONS[e.icon]} {e.title}")
            if e.active:
                self.conv_list.selection_set(i)

    def display_messages(self):
        conv = self.ctrl.session.active
        self.title_label.config(text=conv.title)
        self.chat.delete(1.0, tk.END)
        if not conv.messages:
            self.chat.insert(tk.END, "Welcome to AI Studio\nChat with AI, generate images, or edit existing ones\n")
            return
        for m in conv.messages:
            insert_segments(self.chat, to_segments(render_message(m)))
            self.chat.insert(tk.END, "\n\n")
        self.chat.see(tk.END)

    def _check_server(self):
        self.ctrl.refresh_server_status()
        self.root.after(0, lambda: self.status.config(text=self.ctrl.status_text()))

    # ---- 会话 ----

    def on_select_conv(self, event):
        sel = self.conv_list.curselection()
        if not sel or self.sending:
            return
        self.ctrl.session.switch_conversation(self.entries[sel[0]].conversation_id)
        self.refresh()

    def on_new_chat(self):
        self.ctrl.new_conversation()
        self.refresh()

    def on_clear_chat(self):
        self.ctrl.session.clear_active()
        self.refresh()

    def on_delete_chat(self):
        if messagebox.askyesno("Delete", "Delete this chat?"):
            self.ctrl.session.delete_conversation(self.ctrl.session.active.id)
            self.refresh()

    def on_mode(self):
        self.ctrl.set_mode(self.mode_var.get())
        self.entry.delete(0, tk.END)

    def on_upload_image(self):
        path = filedialog.askopenfilename(filetypes=[("Images", "*.png *.jpg *.jpeg *.webp *.gif")])
        if not path:
            return
        p = Path(path)
        self.ctrl.attach_image(p.name, p.read_bytes())
        self.status.config(text=f"Image ready: {p.name}")

    def on_api_key(self):
        key = simpledialog.askstring("API Key", "Enter your API key", show="*", parent=self.root)
        if key is None:
            self.ctrl.close_modal("api_key")
            return
        self.status.config(text="Validating API key...")

        def worker():
            msg = self.ctrl.save_api_key(key)
            self.root.after(0, lambda: self.status.config(text=f"{msg}  |  {self.ctrl.status_text()}"))

        threading.Thread(target=worker, daemon=True).start()

    def on_open_files(self):
        self.ctrl.open_modal("files")
        win = tk.Toplevel(self.root)
        win.title("Files")
        box = tk.Listbox(win, width=60, height=15)
        box.pack(fill=tk.BOTH, expand=True)
        win.protocol("WM_DELETE_WINDOW", lambda: (self.ctrl.close_modal("files"), win.destroy()))
        try:
            files = self.ctrl.backend.list_files()
        except BusinessError as e:
            box.insert(tk.END, f"Error loading files: {e.message}")
            return
        if not files:
            box.insert(tk.END, "No files uploaded yet")
        for f in files:
            box.insert(tk.END, f"{f.filename}  ({format_file_size(f.size)})")

    # ---- 发送 ----

    def on_send(self):
        if self.sending:
            return
        text = self.entry.get().strip()
        if not text:
            return
        self.sending = True
        self.send_btn.config(state=tk.DISABLED)
        self.status.config(text="Generating...")
        self.entry.delete(0, tk.END)
        self.chat.insert(tk.END, f"{text}\n\n", "user")
        surface = TextSurface(self.root, self.chat)

        def worker():
            try:
                res = self.ctrl.submit(text, surface=surface)
                self.root.after(0, lambda: self.on_response(res, None))
            except BusinessError as e:
                self.root.after(0, lambda: self.on_response(None, e))

        threading.Thread(target=worker, daemon=True).start()

    def on_send_event(self, event):
        self.on_send()
        return "break"

    def on_response(self, res, err):
        self.sending = False
        self.send_btn.config(state=tk.NORMAL)
        self.refresh()
        if err:
            self.chat.insert(tk.END, f"Error: {err.message}\n", "error")
            self.status.config(text="Error")
        elif res.message:
            self.status.config(text=res.message)
        if res is not None and res.status == "needs_credential":
            self.on_api_key()


def main():
    root = tk.Tk()
    App(root, build_controller())
    root.mainloop()


if __name__ == "__main__":
    main()
